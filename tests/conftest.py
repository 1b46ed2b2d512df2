"""Pytest configuration and fixtures for ddd-scaffold tests."""

from collections.abc import Callable
from pathlib import Path

import pytest

from ddd_scaffold.core.constants import STATE_DIR_ENV


@pytest.fixture(autouse=True)
def _default_state_dir(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep every test on the default ``.ddd`` state directory."""
    monkeypatch.delenv(STATE_DIR_ENV, raising=False)


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """An empty target project."""
    root = tmp_path / "project"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def write_project_file(project_root: Path) -> Callable[[str, str], Path]:
    """Write a file into the project, creating parent directories."""

    def _write(relative: str, content: str) -> Path:
        target = project_root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content.encode("utf-8"))
        return target

    return _write


@pytest.fixture
def sample_module_files() -> list[tuple[str, str]]:
    """Rendered outputs for a small ``users`` module."""
    return [
        (
            "src/users/user.entity.ts",
            "export class User {\n  id: string;\n}\n",
        ),
        (
            "src/users/user.service.ts",
            "export class UserService {}\n",
        ),
        (
            "src/users/users.module.ts",
            "export class UsersModule {}\n",
        ),
    ]
