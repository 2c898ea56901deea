from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime

from birthday_engine.date_logic import days_until
from birthday_engine.delivery import DeliveryResult, DeliveryStatus, DeliveryTransport
from birthday_engine.document_store import DocumentStore
from birthday_engine.models import NotificationSettings, Person
from birthday_engine.reminder_state import ReminderLog, dedupe_key, prune_old_keys
from birthday_engine.timing import Timing, match_timings, timing_label

LOGGER = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
REMINDER_TITLE = "Birthday Reminder"


@dataclass(frozen=True)
class DueReminder:
    person_id: str
    person_name: str
    timing: Timing
    days_until: int


@dataclass
class DispatchReport:
    accounts_seen: int = 0
    accounts_failed: int = 0
    reminders_sent: int = 0
    send_failures: int = 0
    tokens_invalidated: int = 0


def format_reminder_body(reminder: DueReminder) -> str:
    return f"{reminder.person_name}'s birthday is {timing_label(reminder.timing)}!"


def due_reminders_for_person(person: Person, settings: NotificationSettings, today: date) -> list[DueReminder]:
    timings = person.notification_timings
    if timings is None:
        timings = settings.default_timings

    remaining = days_until(person.date_of_birth, today)
    return [
        DueReminder(
            person_id=person.id,
            person_name=person.name,
            timing=timing,
            days_until=remaining,
        )
        for timing in match_timings(remaining, timings)
    ]


class ReminderService:
    def __init__(
        self,
        *,
        store: DocumentStore,
        transport: DeliveryTransport,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self._store = store
        self._transport = transport
        self._page_size = page_size

    async def dispatch(self, now: datetime | date) -> DispatchReport:
        today = now.date() if isinstance(now, datetime) else now
        report = DispatchReport()

        cursor: str | None = None
        while True:
            account_ids, has_more = await self._store.list_accounts(cursor, self._page_size)
            for account_id in account_ids:
                report.accounts_seen += 1
                try:
                    await self._dispatch_account(account_id, today, report)
                except Exception:
                    report.accounts_failed += 1
                    LOGGER.exception("Reminder dispatch failed for account %s", account_id)

            if not account_ids or not has_more or len(account_ids) < self._page_size:
                break
            cursor = account_ids[-1]

        LOGGER.info(
            "Reminder run for %s: %s accounts, %s sent, %s failed sends, %s tokens invalidated, %s failed accounts",
            today.isoformat(),
            report.accounts_seen,
            report.reminders_sent,
            report.send_failures,
            report.tokens_invalidated,
            report.accounts_failed,
        )
        return report

    async def _dispatch_account(self, account_id: str, today: date, report: DispatchReport) -> None:
        settings_doc = await self._store.get_settings(account_id)
        if settings_doc is None:
            return

        settings = NotificationSettings.from_document(settings_doc)
        if not settings.can_deliver:
            return

        due = await self._collect_due(account_id, settings, today)
        if not due:
            return

        log = ReminderLog.from_document(await self._store.get_reminder_log(account_id))
        log_changed = prune_old_keys(log, today)

        try:
            for reminder in due:
                key = dedupe_key(today, reminder.person_id, reminder.timing)
                if key in log.sent_keys:
                    LOGGER.debug("Reminder %s already sent for account %s", key, account_id)
                    continue

                result = await self._send(settings.fcm_token, reminder)
                if result.status is DeliveryStatus.OK:
                    log.sent_keys.add(key)
                    log_changed = True
                    report.reminders_sent += 1
                    continue

                report.send_failures += 1
                if result.status is DeliveryStatus.TOKEN_INVALID:
                    await self._store.update_settings(account_id, {"enabled": False, "fcmToken": None})
                    report.tokens_invalidated += 1
                    LOGGER.warning(
                        "Delivery token for account %s is no longer valid; notifications disabled (%s)",
                        account_id,
                        result.detail,
                    )
                    break

                # No intra-day retry: this reminder is dropped until the next matching run.
                LOGGER.error(
                    "Failed to send %s reminder for %s to account %s: %s",
                    reminder.timing.value,
                    reminder.person_id,
                    account_id,
                    result.detail,
                )
        finally:
            if log_changed:
                await self._store.set_reminder_log(account_id, log.to_document())

    async def _collect_due(
        self, account_id: str, settings: NotificationSettings, today: date
    ) -> list[DueReminder]:
        due: list[DueReminder] = []

        cursor: str | None = None
        while True:
            rows, has_more = await self._store.list_people(account_id, cursor, self._page_size)
            for row in rows:
                if not row.get("dateOfBirth"):
                    continue
                try:
                    person = Person.from_document(row)
                except (ValueError, TypeError) as exc:
                    LOGGER.warning("Skipping malformed person %s for account %s: %s", row.get("id"), account_id, exc)
                    continue
                due.extend(due_reminders_for_person(person, settings, today))

            if not rows or not has_more or len(rows) < self._page_size:
                break
            cursor = str(rows[-1].get("id"))

        return due

    async def _send(self, token: str | None, reminder: DueReminder) -> DeliveryResult:
        if token is None:
            return DeliveryResult.token_invalid("missing token")
        try:
            return await self._transport.send(token, REMINDER_TITLE, format_reminder_body(reminder))
        except Exception as exc:
            LOGGER.exception("Delivery transport raised for %s", reminder.person_id)
            return DeliveryResult.error(repr(exc))
