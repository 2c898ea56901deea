from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from birthday_engine.partial_date import InvalidBirthdayError, PartialDate, format_partial_date, parse_partial_date
from birthday_engine.timing import DEFAULT_TIMINGS, Timing, parse_timings


def _string_list(values: Any) -> tuple[str, ...]:
    if not isinstance(values, list):
        return ()
    return tuple(str(value) for value in values if value is not None)


@dataclass(frozen=True)
class PastGift:
    year: int
    description: str
    rating: int | None = None

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> PastGift:
        rating = data.get("rating")
        return cls(
            year=int(data.get("year", 0)),
            description=str(data.get("description", "")),
            rating=int(rating) if rating is not None else None,
        )

    def to_document(self) -> dict[str, Any]:
        return {"year": self.year, "description": self.description, "rating": self.rating}


@dataclass(frozen=True)
class Person:
    id: str
    name: str
    date_of_birth: PartialDate
    relationship: str = "other"
    notification_timings: tuple[Timing, ...] | None = None
    interests: tuple[str, ...] = ()
    gift_ideas: tuple[str, ...] = ()
    past_gifts: tuple[PastGift, ...] = ()
    notes: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> Person:
        person_id = str(data.get("id", "")).strip()
        if not person_id:
            raise InvalidBirthdayError("Person document has no id")

        name = str(data.get("name", "")).strip()
        if not name:
            raise InvalidBirthdayError(f"Person {person_id} has no name")

        raw_timings = data.get("notificationTimings")
        past_gifts = data.get("pastGifts")
        notes = data.get("notes")
        return cls(
            id=person_id,
            name=name,
            date_of_birth=parse_partial_date(data.get("dateOfBirth", "")),
            relationship=str(data.get("relationship") or "other"),
            notification_timings=parse_timings(raw_timings) if raw_timings is not None else None,
            interests=_string_list(data.get("interests")),
            gift_ideas=_string_list(data.get("giftIdeas")),
            past_gifts=tuple(
                PastGift.from_document(row) for row in (past_gifts if isinstance(past_gifts, list) else [])
                if isinstance(row, dict)
            ),
            notes=str(notes) if notes else None,
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "dateOfBirth": format_partial_date(self.date_of_birth),
            "relationship": self.relationship,
            "interests": list(self.interests),
            "giftIdeas": list(self.gift_ideas),
            "pastGifts": [gift.to_document() for gift in self.past_gifts],
            "notes": self.notes,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.notification_timings is not None:
            document["notificationTimings"] = [timing.value for timing in self.notification_timings]
        return document


@dataclass(frozen=True)
class NotificationSettings:
    enabled: bool = False
    default_timings: tuple[Timing, ...] = DEFAULT_TIMINGS
    fcm_token: str | None = None

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> NotificationSettings:
        raw_timings = data.get("defaultTimings")
        token = data.get("fcmToken")
        return cls(
            enabled=bool(data.get("enabled", False)),
            default_timings=parse_timings(raw_timings) if raw_timings is not None else DEFAULT_TIMINGS,
            fcm_token=str(token) if token else None,
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "defaultTimings": [timing.value for timing in self.default_timings],
            "fcmToken": self.fcm_token,
        }

    @property
    def can_deliver(self) -> bool:
        return self.enabled and self.fcm_token is not None


@dataclass
class RateLimitRecord:
    timestamps: list[int] = field(default_factory=list)

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> RateLimitRecord:
        values = data.get("timestamps", [])
        if not isinstance(values, list):
            return cls()
        return cls(timestamps=[int(value) for value in values])

    def to_document(self) -> dict[str, Any]:
        return {"timestamps": list(self.timestamps)}


@dataclass(frozen=True)
class GiftRequest:
    name: str
    relationship: str
    country: str
    age: int | None = None
    interests: tuple[str, ...] = ()
    past_gifts: tuple[PastGift, ...] = ()
    notes: str | None = None
    gift_ideas: tuple[str, ...] = ()


@dataclass(frozen=True)
class GiftSuggestion:
    name: str
    description: str
    estimated_price: str
    purchase_url: str

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "description": self.description,
            "estimatedPrice": self.estimated_price,
            "purchaseUrl": self.purchase_url,
        }
