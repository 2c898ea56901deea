from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

LOGGER = logging.getLogger(__name__)

Document = dict[str, Any]

_PERSON_IMMUTABLE_KEYS = {"id", "createdAt"}


class DocumentStore(Protocol):
    async def list_accounts(self, cursor: str | None, page_size: int) -> tuple[list[str], bool]: ...

    async def get_settings(self, account_id: str) -> Document | None: ...

    async def set_settings(self, account_id: str, settings: Document) -> None: ...

    async def update_settings(self, account_id: str, patch: Document) -> None: ...

    async def list_people(
        self, account_id: str, cursor: str | None, page_size: int
    ) -> tuple[list[Document], bool]: ...

    async def get_person(self, account_id: str, person_id: str) -> Document | None: ...

    async def add_person(self, account_id: str, person: Document, now: datetime) -> Document: ...

    async def update_person(
        self, account_id: str, person_id: str, patch: Document, now: datetime
    ) -> Document: ...

    async def delete_person(self, account_id: str, person_id: str) -> bool: ...

    async def get_rate_limit(self, account_id: str) -> Document | None: ...

    async def set_rate_limit(self, account_id: str, record: Document) -> None: ...

    async def get_reminder_log(self, account_id: str) -> Document | None: ...

    async def set_reminder_log(self, account_id: str, log: Document) -> None: ...


def write_text_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        delete=False,
    ) as temp_file:
        temp_file.write(text)
        temp_name = temp_file.name

    os.replace(temp_name, path)


def _page_after(keys: list[str], cursor: str | None, page_size: int) -> tuple[list[str], bool]:
    if page_size < 1:
        raise ValueError("page_size must be positive")
    remaining = [key for key in keys if cursor is None or key > cursor]
    return remaining[:page_size], len(remaining) > page_size


class JsonDocumentStore:
    """Per-account documents held in memory and optionally mirrored to one JSON file.

    Layout: ``{"version": 1, "users": {account_id: {"settings", "people", "rateLimit", "reminderLog"}}}``.
    Accounts and people are listed in ascending id order, and cursors are the last id returned.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._users: dict[str, dict[str, Any]] = {}
        if path is not None and path.exists():
            self._users = self._load(path)

    @staticmethod
    def _load(path: Path) -> dict[str, dict[str, Any]]:
        with path.open("r", encoding="utf-8") as file_obj:
            data = json.load(file_obj)

        users = data.get("users", {})
        if not isinstance(users, dict):
            LOGGER.warning("Ignoring malformed document store at %s", path)
            return {}
        return {str(key): value for key, value in users.items() if isinstance(value, dict)}

    def _save(self) -> None:
        if self._path is None:
            return
        payload = {"version": 1, "users": self._users}
        write_text_atomic(self._path, json.dumps(payload, indent=2, sort_keys=True) + "\n")

    def _user(self, account_id: str) -> dict[str, Any]:
        return self._users.setdefault(account_id, {})

    def _get(self, account_id: str, key: str) -> Document | None:
        value = self._users.get(account_id, {}).get(key)
        return copy.deepcopy(value) if value is not None else None

    def _set(self, account_id: str, key: str, value: Document) -> None:
        self._user(account_id)[key] = copy.deepcopy(value)
        self._save()

    async def list_accounts(self, cursor: str | None, page_size: int) -> tuple[list[str], bool]:
        return _page_after(sorted(self._users), cursor, page_size)

    async def get_settings(self, account_id: str) -> Document | None:
        return self._get(account_id, "settings")

    async def set_settings(self, account_id: str, settings: Document) -> None:
        self._set(account_id, "settings", settings)

    async def update_settings(self, account_id: str, patch: Document) -> None:
        merged = self._get(account_id, "settings") or {}
        merged.update(patch)
        self._set(account_id, "settings", merged)

    async def list_people(
        self, account_id: str, cursor: str | None, page_size: int
    ) -> tuple[list[Document], bool]:
        people = self._users.get(account_id, {}).get("people", {})
        ids, has_more = _page_after(sorted(people), cursor, page_size)
        return [copy.deepcopy(people[person_id]) for person_id in ids], has_more

    async def get_person(self, account_id: str, person_id: str) -> Document | None:
        person = self._users.get(account_id, {}).get("people", {}).get(person_id)
        return copy.deepcopy(person) if person is not None else None

    async def add_person(self, account_id: str, person: Document, now: datetime) -> Document:
        stamp = now.isoformat()
        document = {
            key: value for key, value in copy.deepcopy(person).items() if value is not None
        }
        document.update({"id": str(uuid.uuid4()), "createdAt": stamp, "updatedAt": stamp})

        self._user(account_id).setdefault("people", {})[document["id"]] = document
        self._save()
        return copy.deepcopy(document)

    async def update_person(
        self, account_id: str, person_id: str, patch: Document, now: datetime
    ) -> Document:
        people = self._users.get(account_id, {}).get("people", {})
        if person_id not in people:
            raise KeyError(f"Unknown person {person_id} for account {account_id}")

        document = people[person_id]
        for key, value in copy.deepcopy(patch).items():
            if key in _PERSON_IMMUTABLE_KEYS:
                continue
            if value is None:
                document.pop(key, None)
            else:
                document[key] = value
        document["updatedAt"] = now.isoformat()
        self._save()
        return copy.deepcopy(document)

    async def delete_person(self, account_id: str, person_id: str) -> bool:
        people = self._users.get(account_id, {}).get("people", {})
        if people.pop(person_id, None) is None:
            return False
        self._save()
        return True

    async def get_rate_limit(self, account_id: str) -> Document | None:
        return self._get(account_id, "rateLimit")

    async def set_rate_limit(self, account_id: str, record: Document) -> None:
        self._set(account_id, "rateLimit", record)

    async def get_reminder_log(self, account_id: str) -> Document | None:
        return self._get(account_id, "reminderLog")

    async def set_reminder_log(self, account_id: str, log: Document) -> None:
        self._set(account_id, "reminderLog", log)
