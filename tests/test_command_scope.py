import logging
from collections.abc import Callable

import pytest

import bindgen

Scope = bindgen.CommandScope


def _registry(
    commands: list[bindgen.Command],
    extensions: tuple[bindgen.ExtensionInfo, ...] | list[bindgen.ExtensionInfo] = (),
) -> bindgen.Registry:
    builder = bindgen.RegistryBuilder()
    builder.add_all(commands)
    for info in extensions:
        builder.add_extension(info)
    return builder.build()


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("vkGetInstanceProcAddr", Scope.STATIC),
        ("vkGetDeviceProcAddr", Scope.STATIC),
        ("vkCreateInstance", Scope.ENTRY),
        ("vkEnumerateInstanceExtensionProperties", Scope.ENTRY),
        ("vkEnumerateInstanceLayerProperties", Scope.ENTRY),
        ("vkEnumerateInstanceVersion", Scope.ENTRY),
    ],
)
def test_named_commands_have_fixed_scope(
    make_command: Callable[..., bindgen.Command], name: str, expected: Scope
) -> None:
    command = make_command(name, "VkDevice")

    assert bindgen.detect_command_scope(command, {}) is expected


@pytest.mark.parametrize(
    ("first_param", "expected"),
    [
        ("VkDevice", Scope.DEVICE),
        ("VkQueue", Scope.DEVICE),
        ("VkCommandBuffer", Scope.DEVICE),
        ("VkInstance", Scope.INSTANCE),
        ("VkPhysicalDevice", Scope.INSTANCE),
    ],
)
def test_first_param_decides_scope_without_extension(
    make_command: Callable[..., bindgen.Command], first_param: str, expected: Scope
) -> None:
    command = make_command("vkDoThing", first_param)

    assert bindgen.detect_command_scope(command, {}) is expected


def test_command_without_params_is_instance_scope(
    make_command: Callable[..., bindgen.Command],
) -> None:
    assert bindgen.detect_command_scope(make_command("vkNoParams"), {}) is Scope.INSTANCE


def test_pointer_first_param_does_not_count_as_device_level() -> None:
    command = bindgen.Command(
        bindgen.Identifier.of("vkOdd"),
        (bindgen.Param(bindgen.Identifier.of("p"), bindgen.PointerType(bindgen.named_type("VkDevice"))),),
    )

    assert bindgen.detect_command_scope(command, {}) is Scope.INSTANCE


def test_extension_scope_takes_precedence(
    make_command: Callable[..., bindgen.Command],
) -> None:
    scopes = {"vkCreateDebugUtilsMessengerEXT": Scope.INSTANCE}
    command = make_command("vkCreateDebugUtilsMessengerEXT", "VkDevice")

    assert bindgen.detect_command_scope(command, scopes) is Scope.INSTANCE


def test_device_extension_command_on_physical_device_is_instance_scope(
    make_command: Callable[..., bindgen.Command],
) -> None:
    scopes = {
        "vkGetPhysicalDeviceSurfaceSupportKHR": Scope.DEVICE,
        "vkCreateSwapchainKHR": Scope.DEVICE,
    }

    assert (
        bindgen.detect_command_scope(
            make_command("vkGetPhysicalDeviceSurfaceSupportKHR", "VkPhysicalDevice"), scopes
        )
        is Scope.INSTANCE
    )
    assert (
        bindgen.detect_command_scope(make_command("vkCreateSwapchainKHR", "VkDevice"), scopes)
        is Scope.DEVICE
    )


def test_build_extension_command_scopes_first_wins(
    caplog: pytest.LogCaptureFixture,
) -> None:
    extensions = [
        bindgen.ExtensionInfo("VK_A", "device", ("vkShared", "vkA")),
        bindgen.ExtensionInfo("VK_B", "instance", ("vkShared", "vkB")),
        bindgen.ExtensionInfo("VK_C", "device", ("vkShared",)),
        bindgen.ExtensionInfo("VK_D", None, ("vkD",)),
    ]

    with caplog.at_level(logging.WARNING, logger="bindgen"):
        scopes = bindgen.build_extension_command_scopes(extensions)

    assert dict(scopes) == {
        "vkShared": Scope.DEVICE,
        "vkA": Scope.DEVICE,
        "vkB": Scope.INSTANCE,
    }
    conflicts = [r for r in caplog.records if "conflicting command type" in r.message]
    assert len(conflicts) == 1
    assert "VK_B" in conflicts[0].message


def test_build_extension_command_scopes_is_read_only() -> None:
    scopes = bindgen.build_extension_command_scopes(
        [bindgen.ExtensionInfo("VK_A", "device", ("vkA",))]
    )

    with pytest.raises(TypeError):
        scopes["vkB"] = Scope.DEVICE


def test_classify_commands_buckets_sorted_by_name(
    make_command: Callable[..., bindgen.Command],
) -> None:
    registry = _registry(
        [
            make_command("vkQueueSubmit", "VkQueue"),
            make_command("vkGetInstanceProcAddr", "VkInstance"),
            make_command("vkCreateInstance"),
            make_command("vkAllocateMemory", "VkDevice"),
            make_command("vkEnumeratePhysicalDevices", "VkInstance"),
            make_command("vkCreateSwapchainKHR", "VkDevice"),
        ],
        [bindgen.ExtensionInfo("VK_KHR_swapchain", "device", ("vkCreateSwapchainKHR",))],
    )

    classification = bindgen.classify_commands(registry)

    def names(bucket: tuple[bindgen.Command, ...]) -> list[str]:
        return [c.name.value for c in bucket]

    assert names(classification.static) == ["vkGetInstanceProcAddr"]
    assert names(classification.entry) == ["vkCreateInstance"]
    assert names(classification.instance) == ["vkEnumeratePhysicalDevices"]
    assert names(classification.device) == [
        "vkAllocateMemory",
        "vkCreateSwapchainKHR",
        "vkQueueSubmit",
    ]
    assert classification.bucket(Scope.DEVICE) is classification.device


def test_classification_is_a_partition(make_command: Callable[..., bindgen.Command]) -> None:
    commands = [make_command(f"vkCmd{i}", t) for i, t in enumerate(["VkDevice", "VkInstance"] * 5)]
    classification = bindgen.classify_commands(_registry(commands))

    bucketed = [c for scope in Scope for c in classification.bucket(scope)]
    assert sorted(c.name.value for c in bucketed) == sorted(c.name.value for c in commands)
    assert set(classification.scopes) == {c.name for c in commands}
    for scope in Scope:
        for command in classification.bucket(scope):
            assert classification.scopes[command.name] is scope


def test_classify_commands_is_deterministic(make_command: Callable[..., bindgen.Command]) -> None:
    registry = _registry([make_command("vkB", "VkDevice"), make_command("vkA", "VkQueue")])

    assert bindgen.classify_commands(registry).device == bindgen.classify_commands(registry).device
