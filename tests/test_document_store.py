import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from birthday_engine.document_store import JsonDocumentStore
from birthday_engine.models import Person

CREATED = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)
UPDATED = datetime(2026, 2, 1, 9, 0, tzinfo=timezone.utc)


def test_list_accounts_pages_with_cursor() -> None:
    store = JsonDocumentStore()
    for account_id in ["c", "a", "e", "b", "d"]:
        asyncio.run(store.set_settings(account_id, {"enabled": True}))

    first, more_first = asyncio.run(store.list_accounts(None, 2))
    second, more_second = asyncio.run(store.list_accounts(first[-1], 2))
    third, more_third = asyncio.run(store.list_accounts(second[-1], 2))

    assert (first, more_first) == (["a", "b"], True)
    assert (second, more_second) == (["c", "d"], True)
    assert (third, more_third) == (["e"], False)


def test_list_accounts_rejects_bad_page_size() -> None:
    with pytest.raises(ValueError):
        asyncio.run(JsonDocumentStore().list_accounts(None, 0))


def test_add_person_assigns_id_and_stamps() -> None:
    store = JsonDocumentStore()

    added = asyncio.run(store.add_person("acct", {"name": "Alice", "dateOfBirth": "1990-03-14", "notes": None}, CREATED))

    assert added["id"]
    assert added["createdAt"] == CREATED.isoformat()
    assert added["updatedAt"] == CREATED.isoformat()
    assert "notes" not in added
    assert asyncio.run(store.get_person("acct", added["id"])) == added


def test_update_person_stamps_updated_at_and_keeps_identity() -> None:
    store = JsonDocumentStore()
    added = asyncio.run(store.add_person("acct", {"name": "Alice", "dateOfBirth": "1990-03-14"}, CREATED))

    updated = asyncio.run(
        store.update_person(
            "acct",
            added["id"],
            {"name": "Alicia", "id": "hijack", "createdAt": "never"},
            UPDATED,
        )
    )

    assert updated["id"] == added["id"]
    assert updated["name"] == "Alicia"
    assert updated["createdAt"] == CREATED.isoformat()
    assert updated["updatedAt"] == UPDATED.isoformat()
    assert Person.from_document(updated).name == "Alicia"


def test_update_unknown_person_raises() -> None:
    with pytest.raises(KeyError):
        asyncio.run(JsonDocumentStore().update_person("acct", "missing", {"name": "X"}, UPDATED))


def test_delete_person() -> None:
    store = JsonDocumentStore()
    added = asyncio.run(store.add_person("acct", {"name": "Alice", "dateOfBirth": "1990-03-14"}, CREATED))

    assert asyncio.run(store.delete_person("acct", added["id"])) is True
    assert asyncio.run(store.delete_person("acct", added["id"])) is False
    assert asyncio.run(store.get_person("acct", added["id"])) is None


def test_list_people_pages_in_id_order() -> None:
    store = JsonDocumentStore()
    ids = {
        asyncio.run(store.add_person("acct", {"name": f"P{n}", "dateOfBirth": "1990-03-14"}, CREATED))["id"]
        for n in range(3)
    }

    first, has_more = asyncio.run(store.list_people("acct", None, 2))
    rest, has_more_rest = asyncio.run(store.list_people("acct", first[-1]["id"], 2))

    assert has_more is True
    assert has_more_rest is False
    assert [row["id"] for row in first + rest] == sorted(ids)


def test_update_settings_merges_patch() -> None:
    store = JsonDocumentStore()
    asyncio.run(store.set_settings("acct", {"enabled": True, "defaultTimings": ["1-day"], "fcmToken": "tok"}))

    asyncio.run(store.update_settings("acct", {"enabled": False, "fcmToken": None}))
    asyncio.run(store.update_settings("acct", {"enabled": False, "fcmToken": None}))

    assert asyncio.run(store.get_settings("acct")) == {
        "enabled": False,
        "defaultTimings": ["1-day"],
        "fcmToken": None,
    }


def test_returned_documents_are_copies() -> None:
    store = JsonDocumentStore()
    asyncio.run(store.set_rate_limit("acct", {"timestamps": [1, 2]}))

    record = asyncio.run(store.get_rate_limit("acct"))
    record["timestamps"].append(3)

    assert asyncio.run(store.get_rate_limit("acct")) == {"timestamps": [1, 2]}


def test_persists_to_json_file(tmp_path: Path) -> None:
    path = tmp_path / "data" / "store.json"
    store = JsonDocumentStore(path)
    asyncio.run(store.set_settings("acct", {"enabled": True, "fcmToken": "tok"}))
    added = asyncio.run(store.add_person("acct", {"name": "Alice", "dateOfBirth": "0000-03-14"}, CREATED))

    reloaded = JsonDocumentStore(path)

    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1
    assert asyncio.run(reloaded.get_settings("acct")) == {"enabled": True, "fcmToken": "tok"}
    assert asyncio.run(reloaded.get_person("acct", added["id"]))["name"] == "Alice"
    assert list(tmp_path.joinpath("data").glob(".store.json.*")) == []


def test_update_person_with_none_clears_field() -> None:
    store = JsonDocumentStore()
    added = asyncio.run(
        store.add_person(
            "acct",
            {"name": "Alice", "dateOfBirth": "1990-03-14", "notificationTimings": ["1-day"], "notes": "tea"},
            CREATED,
        )
    )

    updated = asyncio.run(
        store.update_person("acct", added["id"], {"notificationTimings": None, "notes": None}, UPDATED)
    )

    assert "notificationTimings" not in updated
    assert "notes" not in updated
    assert Person.from_document(updated).notification_timings is None
