"""Packaging regression tests."""

import re
from pathlib import Path
from typing import Set

PYPROJECT = Path(__file__).with_name("pyproject.toml")


def _read_list(key: str) -> Set[str]:
    pyproject = PYPROJECT.read_text(encoding="utf-8")
    match = re.search(rf"^{key}\s*=\s*\[(.*?)\]", pyproject, flags=re.DOTALL | re.MULTILINE)
    assert match is not None, f"{key} is missing from pyproject.toml"
    return set(re.findall(r'"([^"]+)"', match.group(1)))


def test_runtime_package_is_packaged():
    packages = _read_list("packages")
    assert "proofmark" in packages


def test_qt_binding_is_a_runtime_dependency():
    dependencies = _read_list("dependencies")
    assert any(dep.startswith("PySide6") for dep in dependencies)


def test_every_submodule_lives_in_the_package():
    package_dir = PYPROJECT.parent / "proofmark"
    modules = {path.stem for path in package_dir.glob("*.py")}
    required = {"model", "comments", "composer", "store", "history", "settings"}
    missing = required - modules
    assert not missing, f"Missing proofmark modules: {sorted(missing)}"
