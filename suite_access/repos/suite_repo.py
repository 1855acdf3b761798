from __future__ import annotations

from typing import Protocol

from suite_access.models.suite import Suite


class SuiteRepo(Protocol):
    def get(self, suite_id: str) -> Suite | None: ...
    def add(self, suite: Suite) -> None: ...
    def replace(self, suite: Suite) -> None: ...
    def remove(self, suite_id: str) -> bool: ...
    def list_all(self) -> list[Suite]: ...
    def count_by_owner(self, owner_id: str) -> int: ...


class InMemorySuiteRepo:
    def __init__(self) -> None:
        self._store: dict[str, Suite] = {}

    def get(self, suite_id: str) -> Suite | None:
        return self._store.get(suite_id)

    def add(self, suite: Suite) -> None:
        if suite.id in self._store:
            raise ValueError("suite already exists")
        self._store[suite.id] = suite

    def replace(self, suite: Suite) -> None:
        if suite.id not in self._store:
            raise KeyError(suite.id)
        self._store[suite.id] = suite

    def remove(self, suite_id: str) -> bool:
        return self._store.pop(suite_id, None) is not None

    def list_all(self) -> list[Suite]:
        return list(self._store.values())

    def count_by_owner(self, owner_id: str) -> int:
        return sum(1 for s in self._store.values() if s.owner_id == owner_id)
