from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from telegram import Bot
from telegram.error import BadRequest, Forbidden, TelegramError

_INVALID_CHAT_MARKERS = ("chat not found", "user not found", "chat_id is empty")


class DeliveryStatus(str, Enum):
    OK = "ok"
    TOKEN_INVALID = "token-invalid"
    ERROR = "error"


@dataclass(frozen=True)
class DeliveryResult:
    status: DeliveryStatus
    detail: str | None = None

    @classmethod
    def ok(cls) -> DeliveryResult:
        return cls(DeliveryStatus.OK)

    @classmethod
    def token_invalid(cls, detail: str | None = None) -> DeliveryResult:
        return cls(DeliveryStatus.TOKEN_INVALID, detail)

    @classmethod
    def error(cls, detail: str) -> DeliveryResult:
        return cls(DeliveryStatus.ERROR, detail)


class DeliveryTransport(Protocol):
    async def send(self, token: str, title: str, body: str) -> DeliveryResult: ...


def _chat_id_from_token(token: str) -> int | str:
    stripped = token.strip()
    if stripped.lstrip("-").isdigit():
        return int(stripped)
    return stripped


class TelegramTransport:
    """Delivers reminders as Telegram messages; the delivery token is the chat id."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def send(self, token: str, title: str, body: str) -> DeliveryResult:
        try:
            await self._bot.send_message(chat_id=_chat_id_from_token(token), text=f"{title}\n{body}")
        except Forbidden as exc:
            return DeliveryResult.token_invalid(str(exc))
        except BadRequest as exc:
            if any(marker in str(exc).lower() for marker in _INVALID_CHAT_MARKERS):
                return DeliveryResult.token_invalid(str(exc))
            return DeliveryResult.error(str(exc))
        except TelegramError as exc:
            return DeliveryResult.error(str(exc))
        return DeliveryResult.ok()
