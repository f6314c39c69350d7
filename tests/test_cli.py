from collections.abc import Callable
from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest

import bindgen


def _assert_config_code(exc_info: pytest.ExceptionInfo[Exception], code: str) -> None:
    err = exc_info.value
    assert getattr(err, "code") == code
    assert getattr(err, "code") in bindgen.VALID_ERROR_CODES


def test_import_bindgen_module_smoke() -> None:
    assert callable(bindgen.main)


def test_build_argument_parser_exposes_surface_and_defaults() -> None:
    parser = bindgen.build_argument_parser()
    option_actions = {
        option: action for action in parser._actions for option in action.option_strings
    }

    expected_options = {
        "--source",
        "--spec",
        "--strict-types",
        "--unresolved-constants",
        "--verbose",
    }

    assert expected_options.issubset(option_actions.keys())
    assert option_actions["--source"].default is None
    assert option_actions["--spec"].default is None
    assert option_actions["--strict-types"].default is False
    assert option_actions["--unresolved-constants"].default == "placeholder"
    assert option_actions["--verbose"].default is False


def test_parse_args_maps_valid_argv_without_semantic_validation(
    existing_paths: dict[str, Path],
) -> None:
    args = bindgen.parse_args(
        ["--source", "vulkan", "--spec", str(existing_paths["vk_xml"]), "--strict-types"]
    )

    assert args.source == "vulkan"
    assert isinstance(args.spec, Path)
    assert args.spec == existing_paths["vk_xml"]
    assert args.strict_types is True


def test_parse_args_unknown_flag_exits_with_code_2() -> None:
    with pytest.raises(SystemExit) as exc_info:
        bindgen.parse_args(["--not-a-flag"])

    assert exc_info.value.code == 2


def test_validate_path_exists_accepts_existing_path(
    existing_paths: dict[str, Path],
) -> None:
    path = existing_paths["vk_xml"]
    assert bindgen.validate_path_exists(path, "--spec") == path


def test_validate_path_exists_rejects_none_with_path_not_found() -> None:
    with pytest.raises(bindgen.ConfigError) as exc_info:
        bindgen.validate_path_exists(None, "--spec")

    _assert_config_code(exc_info, "PATH_NOT_FOUND")
    assert "--spec" in getattr(exc_info.value, "message")


def test_validate_path_exists_raises_path_not_found(missing_path: Path) -> None:
    with pytest.raises(bindgen.ConfigError) as exc_info:
        bindgen.validate_path_exists(missing_path, "--spec")

    _assert_config_code(exc_info, "PATH_NOT_FOUND")
    assert str(missing_path) in getattr(exc_info.value, "message")


def test_validate_config_returns_extract_config(
    make_args: Callable[..., object],
    existing_paths: dict[str, Path],
) -> None:
    config = bindgen.validate_config(
        make_args(strict_types=True, unresolved_constants="omit")
    )

    assert isinstance(config, bindgen.ExtractConfig)
    assert config.source == "webgpu"
    assert config.spec_path == existing_paths["webgpu_yml"]
    assert config.options == bindgen.ExtractOptions(
        strict_types=True,
        unresolved_constants=bindgen.UnresolvedConstantPolicy.OMIT,
    )


def test_validate_config_defaults_spec_path_per_source(
    make_args: Callable[..., object],
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    monkeypatch.chdir(tmp_path)
    (tmp_path / "input").mkdir()
    (tmp_path / "input" / "vk.xml").write_text("<registry/>", encoding="utf-8")

    config = bindgen.validate_config(make_args(source="vulkan", spec=None))

    assert config.spec_path == Path("input/vk.xml")


def test_validate_config_missing_default_spec_mentions_default_location(
    make_args: Callable[..., object],
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    monkeypatch.chdir(tmp_path)

    with pytest.raises(bindgen.ConfigError) as exc_info:
        bindgen.validate_config(make_args(spec=None))

    _assert_config_code(exc_info, "PATH_NOT_FOUND")
    assert "input/webgpu.yml" in getattr(exc_info.value, "suggestion")


def test_validate_config_returns_frozen_dataclasses(
    make_args: Callable[..., object],
) -> None:
    config = bindgen.validate_config(make_args())

    with pytest.raises(FrozenInstanceError):
        config.source = "vulkan"

    with pytest.raises(FrozenInstanceError):
        config.options.strict_types = True


@pytest.mark.parametrize(
    ("overrides", "expected_code"),
    [
        ({"source": None}, "MISSING_SOURCE"),
        ({"source": "metal"}, "INVALID_SOURCE"),
        ({"unresolved_constants": "guess"}, "INVALID_POLICY"),
    ],
)
def test_validate_config_rejects_invalid_values(
    make_args: Callable[..., object],
    overrides: dict[str, object],
    expected_code: str,
) -> None:
    with pytest.raises(bindgen.ConfigError) as exc_info:
        bindgen.validate_config(make_args(**overrides))

    _assert_config_code(exc_info, expected_code)


def test_build_config_composes_parse_and_validate(
    existing_paths: dict[str, Path],
) -> None:
    config = bindgen.build_config(
        [
            "--source",
            "vulkan",
            "--spec",
            str(existing_paths["vk_xml"]),
            "--unresolved-constants",
            "error",
        ]
    )

    assert config.source == "vulkan"
    assert config.options.unresolved_constants is bindgen.UnresolvedConstantPolicy.ERROR
    assert config.options.strict_types is False


def test_config_error_rejects_unknown_code() -> None:
    with pytest.raises(ValueError):
        bindgen.ConfigError("NOT_A_CODE", "message")


def test_error_taxonomy_is_bounded_and_machine_readable() -> None:
    assert bindgen.VALID_ERROR_CODES == {
        "MISSING_SOURCE",
        "INVALID_SOURCE",
        "INVALID_POLICY",
        "PATH_NOT_FOUND",
    }


def test_main_config_error_exits_with_code_1(
    capsys: pytest.CaptureFixture[str],
) -> None:
    with pytest.raises(SystemExit) as exc_info:
        bindgen.main(["--source", "metal"])

    assert exc_info.value.code == 1
    out = capsys.readouterr().out
    assert "Config error [INVALID_SOURCE]" in out
    assert "Hint:" in out


def test_main_malformed_spec_exits_with_code_1(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    broken = tmp_path / "vk.xml"
    broken.write_text("<registry><types>", encoding="utf-8")

    with pytest.raises(SystemExit) as exc_info:
        bindgen.main(["--source", "vulkan", "--spec", str(broken)])

    assert exc_info.value.code == 1
    assert "Error:" in capsys.readouterr().out


def test_main_strict_types_failure_exits_with_code_1(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    spec = tmp_path / "webgpu.yml"
    spec.write_text(
        "objects: []\nfunctions: []\ncallbacks: []\nenums: []\nbitflags: []\n"
        "constants: []\n"
        "structs:\n  - name: limits\n    members:\n      - name: x\n        type: quux\n",
        encoding="utf-8",
    )

    with pytest.raises(SystemExit) as exc_info:
        bindgen.main(["--source", "webgpu", "--spec", str(spec), "--strict-types"])

    assert exc_info.value.code == 1
    assert "quux" in capsys.readouterr().out
