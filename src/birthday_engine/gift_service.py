from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any

from birthday_engine.errors import (
    GiftServiceError,
    InternalError,
    InvalidArgumentError,
    UnauthenticatedError,
    UnavailableError,
    UnparseableSuggestionsError,
)
from birthday_engine.gift_parser import SuggestionParseError, parse_gift_response
from birthday_engine.gift_prompt import COUNTRY_CONFIG, DEFAULT_COUNTRY, build_gift_prompt
from birthday_engine.models import GiftRequest, GiftSuggestion, PastGift
from birthday_engine.rate_limiter import RateLimiter
from birthday_engine.text_generation import TextGenerationBusy, TextGenerationError, TextGenerator

LOGGER = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100
MAX_RELATIONSHIP_LENGTH = 50
MAX_AGE = 150
MAX_INTERESTS = 20
MAX_PAST_GIFTS = 50
MAX_GIFT_IDEAS = 20
MAX_NOTES_LENGTH = 1000
MAX_ITEM_LENGTH = 200
MAX_GIFT_DESCRIPTION_LENGTH = 500
MAX_GIFT_YEAR = 2100

_COUNTRY_RE = re.compile(r"[A-Za-z]{2}")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _required_text(payload: dict[str, Any], key: str, max_length: int) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentError(f"{key} is required")
    value = value.strip()
    if len(value) > max_length:
        raise InvalidArgumentError(f"{key} must be at most {max_length} characters")
    return value


def _text_list(payload: dict[str, Any], key: str, max_items: int) -> tuple[str, ...]:
    values = payload.get(key)
    if values is None:
        return ()
    if not isinstance(values, list):
        raise InvalidArgumentError(f"{key} must be a list")
    if len(values) > max_items:
        raise InvalidArgumentError(f"{key} must have at most {max_items} entries")

    cleaned: list[str] = []
    for value in values:
        if not isinstance(value, str) or not value.strip():
            raise InvalidArgumentError(f"{key} entries must be non-empty strings")
        if len(value.strip()) > MAX_ITEM_LENGTH:
            raise InvalidArgumentError(f"{key} entries must be at most {MAX_ITEM_LENGTH} characters")
        cleaned.append(value.strip())
    return tuple(cleaned)


def _past_gifts(payload: dict[str, Any]) -> tuple[PastGift, ...]:
    values = payload.get("pastGifts")
    if values is None:
        return ()
    if not isinstance(values, list):
        raise InvalidArgumentError("pastGifts must be a list")
    if len(values) > MAX_PAST_GIFTS:
        raise InvalidArgumentError(f"pastGifts must have at most {MAX_PAST_GIFTS} entries")

    gifts: list[PastGift] = []
    for row in values:
        if not isinstance(row, dict):
            raise InvalidArgumentError("pastGifts entries must be objects")

        year = row.get("year")
        if not _is_int(year) or year < 1 or year > MAX_GIFT_YEAR:
            raise InvalidArgumentError(f"pastGifts year must be between 1 and {MAX_GIFT_YEAR}")

        description = _required_text(row, "description", MAX_GIFT_DESCRIPTION_LENGTH)

        rating = row.get("rating")
        if rating is not None and (not _is_int(rating) or rating < 1 or rating > 5):
            raise InvalidArgumentError("pastGifts rating must be between 1 and 5")

        gifts.append(PastGift(year=year, description=description, rating=rating))
    return tuple(gifts)


def validate_gift_request(payload: Any, *, default_country: str = DEFAULT_COUNTRY) -> GiftRequest:
    if not isinstance(payload, dict):
        raise InvalidArgumentError("Request body must be an object")

    age = payload.get("age")
    if age is not None and (not _is_int(age) or age < 0 or age > MAX_AGE):
        raise InvalidArgumentError(f"age must be between 0 and {MAX_AGE}")

    notes = payload.get("notes")
    if notes is not None:
        if not isinstance(notes, str):
            raise InvalidArgumentError("notes must be a string")
        if len(notes) > MAX_NOTES_LENGTH:
            raise InvalidArgumentError(f"notes must be at most {MAX_NOTES_LENGTH} characters")
        notes = notes.strip() or None

    country = payload.get("country")
    if country is None:
        country = default_country
    elif not isinstance(country, str) or not _COUNTRY_RE.fullmatch(country.strip()):
        raise InvalidArgumentError("country must be a 2-letter country code")
    country = country.strip().upper()
    if country not in COUNTRY_CONFIG:
        LOGGER.info("Unsupported country %s, using %s", country, default_country)
        country = default_country.upper()

    return GiftRequest(
        name=_required_text(payload, "name", MAX_NAME_LENGTH),
        relationship=_required_text(payload, "relationship", MAX_RELATIONSHIP_LENGTH),
        country=country,
        age=age,
        interests=_text_list(payload, "interests", MAX_INTERESTS),
        past_gifts=_past_gifts(payload),
        notes=notes,
        gift_ideas=_text_list(payload, "giftIdeas", MAX_GIFT_IDEAS),
    )


class GiftService:
    def __init__(
        self,
        *,
        generator: TextGenerator,
        rate_limiter: RateLimiter,
        default_country: str = DEFAULT_COUNTRY,
    ) -> None:
        self._generator = generator
        self._rate_limiter = rate_limiter
        self._default_country = default_country

    async def suggest(self, account_id: str | None, payload: Any, now: datetime) -> list[GiftSuggestion]:
        if not account_id:
            raise UnauthenticatedError("Sign in to get gift suggestions.")

        request = validate_gift_request(payload, default_country=self._default_country)
        try:
            await self._rate_limiter.acquire(account_id, now)
        except GiftServiceError:
            raise
        except Exception as exc:
            LOGGER.exception("Rate limit check failed for account %s", account_id)
            raise InternalError("Failed to generate gift suggestions.") from exc

        prompt = build_gift_prompt(request)
        try:
            text = await self._generator.complete(prompt)
        except TextGenerationBusy as exc:
            LOGGER.warning("Text generation busy for account %s: %s", account_id, exc)
            raise UnavailableError("Gift suggestions are busy right now. Please try again shortly.") from exc
        except TextGenerationError as exc:
            raise InternalError("Failed to generate gift suggestions.") from exc
        except Exception as exc:
            LOGGER.exception("Unexpected text generation failure for account %s", account_id)
            raise InternalError("Failed to generate gift suggestions.") from exc

        try:
            suggestions = parse_gift_response(text, request.country)
        except SuggestionParseError as exc:
            LOGGER.warning("Unparseable gift response for account %s: %.500s", account_id, text)
            raise UnparseableSuggestionsError("Could not parse gift suggestions. Please try again.") from exc

        LOGGER.info("Returned %s gift suggestions to account %s", len(suggestions), account_id)
        return suggestions

    async def handle_request(self, account_id: str | None, payload: Any, now: datetime) -> dict[str, Any]:
        try:
            suggestions = await self.suggest(account_id, payload, now)
        except GiftServiceError as exc:
            return {"error": exc.to_dict()}
        except Exception:
            LOGGER.exception("Gift request failed for account %s", account_id)
            return {"error": InternalError("Failed to generate gift suggestions.").to_dict()}
        return {"suggestions": [suggestion.to_dict() for suggestion in suggestions]}
