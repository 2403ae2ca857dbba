from __future__ import annotations

from pathlib import Path
from typing import Any, Iterator, List, Mapping, Optional, Sequence

import pytest

from shelfsync.config import Settings
from shelfsync.exceptions import AuthError
from shelfsync.inventory import InventoryManager


class FakeMirror:
    """In-memory stand-in for the remote workbook."""

    def __init__(self, *, authenticated: bool = True, can_login: bool = True) -> None:
        self.authenticated = authenticated
        self.can_login = can_login
        self.pushes: List[List[Mapping[str, Any]]] = []
        self.login_calls = 0
        self.fail_with: Optional[Exception] = None
        self.on_push = None

    def is_authenticated(self) -> bool:
        return self.authenticated

    def login(self) -> None:
        self.login_calls += 1
        if not self.can_login:
            raise AuthError("Login cancelled")
        self.authenticated = True

    def push_rows(self, rows: Sequence[Mapping[str, Any]]) -> None:
        if self.on_push is not None:
            self.on_push()
        if self.fail_with is not None:
            raise self.fail_with
        self.pushes.append([dict(row) for row in rows])


@pytest.fixture()
def manager(tmp_path: Path) -> InventoryManager:
    return InventoryManager(tmp_path / "inventory.json")


@pytest.fixture()
def make_mirror() -> Any:
    return FakeMirror


@pytest.fixture()
def fake_mirror() -> FakeMirror:
    return FakeMirror()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        environment="test",
        storage_path=tmp_path / "inventory.json",
        app_name="Test Inventory",
    )


@pytest.fixture()
def app(settings: Settings, fake_mirror: FakeMirror) -> Iterator[Any]:
    from shelfsync.app import create_app

    application = create_app(settings, mirror=fake_mirror)
    application.config.update(TESTING=True)
    yield application


@pytest.fixture()
def client(app: Any) -> Any:
    return app.test_client()

