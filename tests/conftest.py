import argparse
import sys
import xml.etree.ElementTree as ET
from collections.abc import Callable
from pathlib import Path

import pytest

PROJECT_DIR = Path(__file__).resolve().parent.parent
if str(PROJECT_DIR) not in sys.path:
    sys.path.insert(0, str(PROJECT_DIR))

import bindgen  # noqa: E402


@pytest.fixture
def existing_paths(tmp_path: Path) -> dict[str, Path]:
    webgpu_yml = tmp_path / "webgpu.yml"
    webgpu_yml.write_text(
        "".join(f"{path}: []\n" for path in bindgen.WEBGPU_TOP_LEVEL_PATHS),
        encoding="utf-8",
    )

    vk_xml = tmp_path / "vk.xml"
    vk_xml.write_text("<registry><types/><commands/></registry>\n", encoding="utf-8")

    return {
        "webgpu_yml": webgpu_yml,
        "vk_xml": vk_xml,
    }


@pytest.fixture
def missing_path(tmp_path: Path) -> Path:
    return tmp_path / "missing"


@pytest.fixture
def make_args(existing_paths: dict[str, Path]) -> Callable[..., argparse.Namespace]:
    def _make_args(**overrides: object) -> argparse.Namespace:
        base_args: dict[str, object] = {
            "source": "webgpu",
            "spec": existing_paths["webgpu_yml"],
            "strict_types": False,
            "unresolved_constants": "placeholder",
            "verbose": False,
        }
        base_args.update(overrides)
        return argparse.Namespace(**base_args)

    return _make_args


@pytest.fixture
def make_webgpu_doc() -> Callable[..., dict]:
    def _make_webgpu_doc(**sections: list) -> dict:
        document: dict = {path: [] for path in bindgen.WEBGPU_TOP_LEVEL_PATHS}
        document.update(sections)
        return document

    return _make_webgpu_doc


@pytest.fixture
def make_registry_root() -> Callable[[str], ET.Element]:
    def _make_registry_root(inner_xml: str) -> ET.Element:
        return ET.fromstring(f"<registry>{inner_xml}</registry>")

    return _make_registry_root


@pytest.fixture
def make_command() -> Callable[..., bindgen.Command]:
    def _make_command(name: str, *param_types: str) -> bindgen.Command:
        params = tuple(
            bindgen.Param(bindgen.Identifier.of(f"p{i}"), bindgen.named_type(t))
            for i, t in enumerate(param_types)
        )
        return bindgen.Command(bindgen.Identifier.of(name), params)

    return _make_command
