from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any
from zoneinfo import ZoneInfo

from telegram import Update
from telegram.ext import CallbackContext, CommandHandler

from birthday_engine.config_store import AppConfig
from birthday_engine.date_logic import current_age, days_until, next_occurrence, upcoming_age
from birthday_engine.document_store import DocumentStore
from birthday_engine.errors import GiftServiceError
from birthday_engine.gift_service import (
    MAX_AGE,
    MAX_GIFT_DESCRIPTION_LENGTH,
    MAX_GIFT_IDEAS,
    MAX_GIFT_YEAR,
    MAX_INTERESTS,
    MAX_ITEM_LENGTH,
    MAX_NAME_LENGTH,
    MAX_NOTES_LENGTH,
    MAX_PAST_GIFTS,
    MAX_RELATIONSHIP_LENGTH,
    GiftService,
)
from birthday_engine.models import GiftSuggestion, NotificationSettings, PastGift, Person
from birthday_engine.partial_date import PartialDate, format_partial_date, parse_partial_date
from birthday_engine.timing import DEFAULT_TIMINGS, Timing, parse_timings, timing_label

LOGGER = logging.getLogger(__name__)

_SHORT_DATE_RE = re.compile(r"(\d{2})-(\d{2})")
_TIMING_VALUES = {timing.value for timing in Timing}


@dataclass(frozen=True)
class HandlerDependencies:
    store: DocumentStore
    config: AppConfig
    gift_service: GiftService | None = None


@dataclass(frozen=True)
class BirthdayListRow:
    name: str
    days_until: int
    next_date: date
    turning_age: int | None
    timings: tuple[Timing, ...]


def _render_help() -> str:
    return (
        "Commands:\n"
        "/start - Send birthday reminders to this chat\n"
        "/stop - Stop birthday reminders for this chat\n"
        "/list - Show tracked birthdays and days until each\n"
        "/add <name> <YYYY-MM-DD or MM-DD> - Track a birthday\n"
        "/remove <name> - Stop tracking a birthday\n"
        "/remind <name> <timings or default> - Set reminder timings for one person\n"
        "/gifts <name> - Suggest gifts for a tracked person\n"
        "/help - Show this help message"
    )


def parse_add_args(args: list[str]) -> tuple[str, PartialDate]:
    if len(args) < 2:
        raise ValueError("Usage: /add <name> <YYYY-MM-DD or MM-DD>")

    name = " ".join(args[:-1]).strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ValueError(f"Name must be at most {MAX_NAME_LENGTH} characters")

    raw_date = args[-1].strip()
    short = _SHORT_DATE_RE.fullmatch(raw_date)
    if short is not None:
        return name, PartialDate(month=int(short.group(1)), day=int(short.group(2)))
    return name, parse_partial_date(raw_date)


def parse_remind_args(args: list[str]) -> tuple[str, tuple[Timing, ...] | None]:
    """Split ``/remind`` arguments into a name and timings; ``None`` means account defaults."""
    values = [value.strip().lower() for value in args]
    if values and values[-1] == "default":
        name_end = len(values) - 1
    else:
        name_end = len(values)
        while name_end > 0 and values[name_end - 1] in _TIMING_VALUES:
            name_end -= 1

    name = " ".join(args[:name_end]).strip()
    if not name or name_end == len(values):
        raise ValueError(f"Usage: /remind <name> <{' '.join(timing.value for timing in Timing)} or default>")
    if values[-1] == "default":
        return name, None
    return name, parse_timings(values[name_end:])


def _find_person(people: list[Person], name: str) -> Person | None:
    wanted = name.strip().lower()
    return next((person for person in people if person.name.lower() == wanted), None)


def _format_timings(timings: tuple[Timing, ...]) -> str:
    if not timings:
        return "none"
    return ", ".join(timing_label(timing) for timing in timings)


def _render_list_message(rows: list[BirthdayListRow]) -> str:
    lines = [f"Tracked birthdays ({len(rows)})", "Sorted by soonest:"]

    for index, row in enumerate(rows, start=1):
        lines.append(f"{index}. {row.name}")
        details = [
            "Today" if row.days_until == 0 else f"In {row.days_until}d",
            f"Next {row.next_date.isoformat()}",
        ]
        if row.turning_age is not None:
            details.append(f"Turning {row.turning_age}")
        details.append(f"Reminders {_format_timings(row.timings)}")
        lines.append(f"   {' | '.join(details)}")
        lines.append("")

    return "\n".join(lines).rstrip()


def _render_suggestions(person_name: str, suggestions: list[GiftSuggestion]) -> str:
    if not suggestions:
        return f"No gift ideas came back for {person_name}. Try again?"

    lines = [f"Gift ideas for {person_name}:"]
    for index, suggestion in enumerate(suggestions, start=1):
        lines.append(f"{index}. {suggestion.name} ({suggestion.estimated_price})")
        if suggestion.description:
            lines.append(f"   {suggestion.description}")
        lines.append(f"   {suggestion.purchase_url}")
    return "\n".join(lines)


def _bounded_items(values: tuple[str, ...], limit: int) -> list[str]:
    items = [value.strip()[:MAX_ITEM_LENGTH] for value in values if value.strip()]
    return items[:limit]


def _bounded_past_gifts(gifts: tuple[PastGift, ...]) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for gift in sorted(gifts, key=lambda gift: gift.year, reverse=True):
        description = gift.description.strip()[:MAX_GIFT_DESCRIPTION_LENGTH]
        if not description or not 1 <= gift.year <= MAX_GIFT_YEAR:
            continue
        rating = gift.rating if gift.rating is not None and 1 <= gift.rating <= 5 else None
        rows.append({"year": gift.year, "description": description, "rating": rating})
    return rows[:MAX_PAST_GIFTS]


def gift_payload_for_person(person: Person, now: date, country: str) -> dict[str, Any]:
    """Build a gift request from a stored person, keeping only what the request bounds allow."""
    age = current_age(person.date_of_birth, now)
    if age is not None and not 0 <= age <= MAX_AGE:
        age = None
    return {
        "name": person.name[:MAX_NAME_LENGTH],
        "age": age,
        "relationship": person.relationship.strip()[:MAX_RELATIONSHIP_LENGTH] or "other",
        "interests": _bounded_items(person.interests, MAX_INTERESTS),
        "pastGifts": _bounded_past_gifts(person.past_gifts),
        "notes": person.notes[:MAX_NOTES_LENGTH] if person.notes else None,
        "giftIdeas": _bounded_items(person.gift_ideas, MAX_GIFT_IDEAS),
        "country": country,
    }


async def load_people(store: DocumentStore, account_id: str, page_size: int) -> list[Person]:
    people: list[Person] = []
    cursor: str | None = None
    while True:
        rows, has_more = await store.list_people(account_id, cursor, page_size)
        for row in rows:
            try:
                people.append(Person.from_document(row))
            except (ValueError, TypeError) as exc:
                LOGGER.warning("Skipping malformed person %s: %s", row.get("id"), exc)
        if not rows or not has_more or len(rows) < page_size:
            return people
        cursor = str(rows[-1].get("id"))


def _account_id(update: Update) -> str | None:
    if update.effective_chat is None:
        return None
    return str(update.effective_chat.id)


def _now(config: AppConfig) -> datetime:
    return datetime.now(ZoneInfo(config.timezone))


async def help_command(update: Update, context: CallbackContext) -> None:
    await update.effective_message.reply_text(_render_help())


async def start_command(update: Update, context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    account_id = _account_id(update)
    if account_id is None:
        return

    existing = await deps.store.get_settings(account_id)
    timings = NotificationSettings.from_document(existing).default_timings if existing else DEFAULT_TIMINGS
    settings = NotificationSettings(enabled=True, default_timings=timings, fcm_token=account_id)
    await deps.store.set_settings(account_id, settings.to_document())

    LOGGER.info("Enabled reminders for account %s", account_id)
    await update.effective_message.reply_text(
        f"Birthday reminders are on for this chat ({_format_timings(timings)}).\n\n{_render_help()}"
    )


async def stop_command(update: Update, context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    account_id = _account_id(update)
    if account_id is None:
        return

    await deps.store.update_settings(account_id, {"enabled": False, "fcmToken": None})
    LOGGER.info("Disabled reminders for account %s", account_id)
    await update.effective_message.reply_text("Birthday reminders are off. Send /start to turn them back on.")


async def list_command(update: Update, context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    account_id = _account_id(update)
    if account_id is None:
        return

    people = await load_people(deps.store, account_id, deps.config.page_size)
    if not people:
        await update.effective_message.reply_text("No birthdays are currently tracked.")
        return

    settings_doc = await deps.store.get_settings(account_id)
    settings = NotificationSettings.from_document(settings_doc) if settings_doc else NotificationSettings()
    today = _now(deps.config).date()

    rows = [
        BirthdayListRow(
            name=person.name,
            days_until=days_until(person.date_of_birth, today),
            next_date=next_occurrence(person.date_of_birth, today),
            turning_age=upcoming_age(person.date_of_birth, today),
            timings=person.notification_timings
            if person.notification_timings is not None
            else settings.default_timings,
        )
        for person in people
    ]
    rows.sort(key=lambda row: (row.days_until, row.name.lower()))
    await update.effective_message.reply_text(_render_list_message(rows))


async def add_command(update: Update, context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    account_id = _account_id(update)
    if account_id is None:
        return

    try:
        name, date_of_birth = parse_add_args(list(context.args or []))
    except ValueError as exc:
        await update.effective_message.reply_text(str(exc))
        return

    people = await load_people(deps.store, account_id, deps.config.page_size)
    existing = _find_person(people, name)
    if existing is not None:
        await update.effective_message.reply_text(f"{existing.name} is already tracked.")
        return

    now = _now(deps.config)
    added = await deps.store.add_person(
        account_id,
        {"name": name, "dateOfBirth": format_partial_date(date_of_birth), "relationship": "other"},
        now,
    )
    LOGGER.info("Added person %s to account %s", added["id"], account_id)
    await update.effective_message.reply_text(
        f"Tracking {name} (next birthday {next_occurrence(date_of_birth, now.date()).isoformat()})."
    )


async def remove_command(update: Update, context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    account_id = _account_id(update)
    if account_id is None:
        return

    name = " ".join(context.args or []).strip()
    if not name:
        await update.effective_message.reply_text("Usage: /remove <name>")
        return

    people = await load_people(deps.store, account_id, deps.config.page_size)
    person = _find_person(people, name)
    if person is None or not await deps.store.delete_person(account_id, person.id):
        await update.effective_message.reply_text(f"No tracked person named {name!r}.")
        return

    LOGGER.info("Removed person %s from account %s", person.id, account_id)
    await update.effective_message.reply_text(f"Stopped tracking {person.name}.")


async def remind_command(update: Update, context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    account_id = _account_id(update)
    if account_id is None:
        return

    try:
        name, timings = parse_remind_args(list(context.args or []))
    except ValueError as exc:
        await update.effective_message.reply_text(str(exc))
        return

    people = await load_people(deps.store, account_id, deps.config.page_size)
    person = _find_person(people, name)
    if person is None:
        await update.effective_message.reply_text(f"No tracked person named {name!r}.")
        return

    value = [timing.value for timing in timings] if timings is not None else None
    await deps.store.update_person(account_id, person.id, {"notificationTimings": value}, _now(deps.config))

    if timings is None:
        await update.effective_message.reply_text(f"{person.name} now uses your default reminder timings.")
    else:
        await update.effective_message.reply_text(f"Reminders for {person.name}: {_format_timings(timings)}.")


async def gifts_command(update: Update, context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    account_id = _account_id(update)
    if account_id is None:
        return

    if deps.gift_service is None:
        await update.effective_message.reply_text("Gift suggestions are not configured.")
        return

    wanted = " ".join(context.args or []).strip()
    if not wanted:
        await update.effective_message.reply_text("Usage: /gifts <name>")
        return

    people = await load_people(deps.store, account_id, deps.config.page_size)
    person = _find_person(people, wanted)
    if person is None:
        await update.effective_message.reply_text(f"No tracked person named {wanted!r}.")
        return

    now = _now(deps.config)
    payload = gift_payload_for_person(person, now.date(), deps.config.default_country)
    try:
        suggestions = await deps.gift_service.suggest(account_id, payload, now)
    except GiftServiceError as exc:
        await update.effective_message.reply_text(str(exc))
        return

    await update.effective_message.reply_text(_render_suggestions(person.name, suggestions))


def build_handlers() -> list:
    return [
        CommandHandler("start", start_command),
        CommandHandler("stop", stop_command),
        CommandHandler("help", help_command),
        CommandHandler("list", list_command),
        CommandHandler("add", add_command),
        CommandHandler("remove", remove_command),
        CommandHandler("remind", remind_command),
        CommandHandler("gifts", gifts_command),
    ]
