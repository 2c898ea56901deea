from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from birthday_engine.delivery import DeliveryResult
from birthday_engine.document_store import JsonDocumentStore
from birthday_engine.models import NotificationSettings, Person
from birthday_engine.partial_date import parse_partial_date
from birthday_engine.reminder_service import (
    DueReminder,
    ReminderService,
    due_reminders_for_person,
    format_reminder_body,
)
from birthday_engine.timing import Timing

NOW = datetime(2026, 3, 15, 8, 0)


@dataclass
class FakeTransport:
    results: dict[str, list[DeliveryResult]] = field(default_factory=dict)
    raise_for: set[str] = field(default_factory=set)
    sent: list[tuple[str, str, str]] = field(default_factory=list)

    async def send(self, token: str, title: str, body: str) -> DeliveryResult:
        self.sent.append((token, title, body))
        if token in self.raise_for:
            raise RuntimeError("transport exploded")
        queued = self.results.get(token)
        if queued:
            return queued.pop(0)
        return DeliveryResult.ok()


class BrokenSettingsStore(JsonDocumentStore):
    def __init__(self, broken_account: str) -> None:
        super().__init__()
        self._broken_account = broken_account

    async def get_settings(self, account_id: str) -> dict[str, Any] | None:
        if account_id == self._broken_account:
            raise RuntimeError("store unavailable")
        return await super().get_settings(account_id)


def _settings(token: str | None, *, enabled: bool = True, timings: list[str] | None = None) -> dict[str, Any]:
    return {
        "enabled": enabled,
        "defaultTimings": timings if timings is not None else ["on-the-day", "1-day", "1-week"],
        "fcmToken": token,
    }


def _seed(store: JsonDocumentStore, account_id: str, settings: dict[str, Any] | None, people: list[dict]) -> None:
    async def run() -> None:
        if settings is not None:
            await store.set_settings(account_id, settings)
        for person in people:
            await store.add_person(account_id, person, NOW)

    asyncio.run(run())


def _dispatch(service: ReminderService, now: datetime | date = NOW):
    return asyncio.run(service.dispatch(now))


def test_no_matching_timing_sends_nothing() -> None:
    store = JsonDocumentStore()
    _seed(store, "acct-1", _settings("tok-1"), [{"name": "Alice", "dateOfBirth": "1990-03-20"}])
    transport = FakeTransport()

    report = _dispatch(ReminderService(store=store, transport=transport))

    assert transport.sent == []
    assert report.accounts_seen == 1
    assert report.reminders_sent == 0


def test_sends_reminder_for_matching_timing() -> None:
    store = JsonDocumentStore()
    _seed(store, "acct-1", _settings("tok-1"), [{"name": "Alice", "dateOfBirth": "1990-03-16"}])
    transport = FakeTransport()

    report = _dispatch(ReminderService(store=store, transport=transport))

    assert transport.sent == [("tok-1", "Birthday Reminder", "Alice's birthday is tomorrow!")]
    assert report.reminders_sent == 1


def test_person_timings_override_account_defaults() -> None:
    store = JsonDocumentStore()
    _seed(
        store,
        "acct-1",
        _settings("tok-1"),
        [
            {"name": "Alice", "dateOfBirth": "1990-03-18", "notificationTimings": ["3-days"]},
            {"name": "Bob", "dateOfBirth": "0000-03-16", "notificationTimings": []},
        ],
    )
    transport = FakeTransport()

    _dispatch(ReminderService(store=store, transport=transport))

    assert [body for _, _, body in transport.sent] == ["Alice's birthday is in 3 days!"]


def test_unknown_year_birthdays_are_reminded() -> None:
    store = JsonDocumentStore()
    _seed(store, "acct-1", _settings("tok-1"), [{"name": "Cara", "dateOfBirth": "0000-03-15"}])
    transport = FakeTransport()

    _dispatch(ReminderService(store=store, transport=transport))

    assert [body for _, _, body in transport.sent] == ["Cara's birthday is today!"]


def test_disabled_or_tokenless_accounts_are_skipped() -> None:
    store = JsonDocumentStore()
    person = {"name": "Alice", "dateOfBirth": "1990-03-15"}
    _seed(store, "acct-disabled", _settings("tok-1", enabled=False), [person])
    _seed(store, "acct-no-token", _settings(None), [person])
    _seed(store, "acct-no-settings", None, [person])
    transport = FakeTransport()

    report = _dispatch(ReminderService(store=store, transport=transport))

    assert transport.sent == []
    assert report.accounts_seen == 3
    assert report.accounts_failed == 0


def test_invalid_token_disables_account_and_next_account_still_runs() -> None:
    store = JsonDocumentStore()
    person = {"name": "Alice", "dateOfBirth": "1990-03-16"}
    _seed(store, "acct-a", _settings("tok-a"), [person])
    _seed(store, "acct-b", _settings("tok-b"), [person])
    transport = FakeTransport(results={"tok-a": [DeliveryResult.token_invalid("not registered")]})

    report = _dispatch(ReminderService(store=store, transport=transport))

    settings_a = asyncio.run(store.get_settings("acct-a"))
    assert settings_a["enabled"] is False
    assert settings_a["fcmToken"] is None
    assert settings_a["defaultTimings"] == ["on-the-day", "1-day", "1-week"]
    assert [token for token, _, _ in transport.sent] == ["tok-a", "tok-b"]
    assert report.tokens_invalidated == 1
    assert report.reminders_sent == 1


def test_invalid_token_stops_remaining_sends_for_that_account() -> None:
    store = JsonDocumentStore()
    _seed(
        store,
        "acct-a",
        _settings("tok-a"),
        [{"name": "Alice", "dateOfBirth": "1990-03-16"}, {"name": "Bob", "dateOfBirth": "1991-03-16"}],
    )
    transport = FakeTransport(results={"tok-a": [DeliveryResult.token_invalid()]})

    _dispatch(ReminderService(store=store, transport=transport))

    assert len(transport.sent) == 1


def test_other_delivery_errors_do_not_block_remaining_sends() -> None:
    store = JsonDocumentStore()
    _seed(
        store,
        "acct-a",
        _settings("tok-a"),
        [{"name": "Alice", "dateOfBirth": "1990-03-16"}, {"name": "Bob", "dateOfBirth": "1991-03-16"}],
    )
    transport = FakeTransport(results={"tok-a": [DeliveryResult.error("unavailable")]})

    report = _dispatch(ReminderService(store=store, transport=transport))

    assert len(transport.sent) == 2
    assert report.send_failures == 1
    assert report.reminders_sent == 1
    assert asyncio.run(store.get_settings("acct-a"))["enabled"] is True


def test_transport_exception_is_treated_as_send_failure() -> None:
    store = JsonDocumentStore()
    person = {"name": "Alice", "dateOfBirth": "1990-03-16"}
    _seed(store, "acct-a", _settings("tok-a"), [person])
    _seed(store, "acct-b", _settings("tok-b"), [person])
    transport = FakeTransport(raise_for={"tok-a"})

    report = _dispatch(ReminderService(store=store, transport=transport))

    assert report.send_failures == 1
    assert report.reminders_sent == 1
    assert report.accounts_failed == 0


def test_account_failure_is_isolated() -> None:
    store = BrokenSettingsStore("acct-a")
    person = {"name": "Alice", "dateOfBirth": "1990-03-16"}
    _seed(store, "acct-a", _settings("tok-a"), [person])
    _seed(store, "acct-b", _settings("tok-b"), [person])
    transport = FakeTransport()

    report = _dispatch(ReminderService(store=store, transport=transport))

    assert report.accounts_failed == 1
    assert [token for token, _, _ in transport.sent] == ["tok-b"]


def test_malformed_person_is_skipped() -> None:
    store = JsonDocumentStore()
    _seed(
        store,
        "acct-a",
        _settings("tok-a"),
        [
            {"name": "Broken", "dateOfBirth": "16/03/1990"},
            {"name": "Missing"},
            {"name": "Alice", "dateOfBirth": "1990-03-16"},
        ],
    )
    transport = FakeTransport()

    report = _dispatch(ReminderService(store=store, transport=transport))

    assert [body for _, _, body in transport.sent] == ["Alice's birthday is tomorrow!"]
    assert report.accounts_failed == 0


def test_pagination_covers_every_account_and_person() -> None:
    store = JsonDocumentStore()
    for index in range(5):
        _seed(
            store,
            f"acct-{index}",
            _settings(f"tok-{index}"),
            [{"name": f"Person {index}-{n}", "dateOfBirth": "1990-03-15"} for n in range(3)],
        )
    transport = FakeTransport()

    report = _dispatch(ReminderService(store=store, transport=transport, page_size=2))

    assert report.accounts_seen == 5
    assert report.reminders_sent == 15
    assert len({body for _, _, body in transport.sent}) == 15


def test_dispatch_deduplicates_same_day() -> None:
    store = JsonDocumentStore()
    _seed(store, "acct-1", _settings("tok-1"), [{"name": "Alice", "dateOfBirth": "1990-03-22"}])
    transport = FakeTransport()
    service = ReminderService(store=store, transport=transport)

    first = _dispatch(service)
    second = _dispatch(service, datetime(2026, 3, 15, 20, 0))

    assert first.reminders_sent == 1
    assert second.reminders_sent == 0
    assert len(transport.sent) == 1


def test_dispatch_next_day_allows_new_send() -> None:
    store = JsonDocumentStore()
    _seed(
        store,
        "acct-1",
        _settings("tok-1", timings=["1-week", "on-the-day", "1-day"]),
        [{"name": "Alice", "dateOfBirth": "1990-03-16"}],
    )
    transport = FakeTransport()
    service = ReminderService(store=store, transport=transport)

    _dispatch(service, date(2026, 3, 15))
    second = _dispatch(service, date(2026, 3, 16))

    assert second.reminders_sent == 1
    assert [body for _, _, body in transport.sent] == [
        "Alice's birthday is tomorrow!",
        "Alice's birthday is today!",
    ]


def test_failed_send_is_not_recorded_as_sent() -> None:
    store = JsonDocumentStore()
    _seed(store, "acct-1", _settings("tok-1"), [{"name": "Alice", "dateOfBirth": "1990-03-16"}])
    transport = FakeTransport(results={"tok-1": [DeliveryResult.error("timeout")]})
    service = ReminderService(store=store, transport=transport)

    _dispatch(service)
    retry = _dispatch(service)

    assert retry.reminders_sent == 1


def test_due_reminders_for_person_uses_defaults_when_no_override() -> None:
    person = Person(id="p1", name="Alice", date_of_birth=parse_partial_date("1990-03-22"))
    settings = NotificationSettings(enabled=True, default_timings=(Timing.ONE_WEEK,), fcm_token="tok")

    assert due_reminders_for_person(person, settings, date(2026, 3, 15)) == [
        DueReminder(person_id="p1", person_name="Alice", timing=Timing.ONE_WEEK, days_until=7)
    ]


def test_format_reminder_body_labels() -> None:
    reminder = DueReminder(person_id="p1", person_name="Bob", timing=Timing.TWO_WEEKS, days_until=14)
    assert format_reminder_body(reminder) == "Bob's birthday is in 2 weeks!"


class FailingUpdateStore(JsonDocumentStore):
    async def update_settings(self, account_id: str, patch: dict[str, Any]) -> None:
        raise RuntimeError("store unavailable")


def test_sent_keys_are_saved_when_a_later_step_fails() -> None:
    store = FailingUpdateStore()
    _seed(
        store,
        "acct-1",
        _settings("tok-1"),
        [{"name": "Alice", "dateOfBirth": "1990-03-16"}, {"name": "Bob", "dateOfBirth": "1990-03-16"}],
    )
    transport = FakeTransport(results={"tok-1": [DeliveryResult.ok(), DeliveryResult.token_invalid("gone")]})

    report = _dispatch(ReminderService(store=store, transport=transport))

    assert report.accounts_failed == 1
    log = asyncio.run(store.get_reminder_log("acct-1"))
    assert len(log["sentKeys"]) == 1

    rerun = _dispatch(ReminderService(store=store, transport=FakeTransport()))
    assert rerun.reminders_sent == 1
