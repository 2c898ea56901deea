from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from telegram.error import BadRequest, Forbidden, NetworkError

from birthday_engine.delivery import DeliveryStatus, TelegramTransport


@dataclass
class FakeBot:
    error: Exception | None = None
    sent_messages: list[tuple[int | str, str]] = field(default_factory=list)

    async def send_message(self, chat_id: int | str, text: str) -> None:
        if self.error is not None:
            raise self.error
        self.sent_messages.append((chat_id, text))


def _send(bot: FakeBot, token: str = "12345"):
    return asyncio.run(TelegramTransport(bot).send(token, "Birthday Reminder", "Alice's birthday is today!"))


def test_successful_send() -> None:
    bot = FakeBot()

    result = _send(bot, "-100200")

    assert result.status is DeliveryStatus.OK
    assert bot.sent_messages == [(-100200, "Birthday Reminder\nAlice's birthday is today!")]


def test_username_tokens_are_passed_through() -> None:
    bot = FakeBot()
    _send(bot, "@family_channel")
    assert bot.sent_messages[0][0] == "@family_channel"


def test_blocked_bot_is_invalid_token() -> None:
    result = _send(FakeBot(error=Forbidden("Forbidden: bot was blocked by the user")))
    assert result.status is DeliveryStatus.TOKEN_INVALID


def test_missing_chat_is_invalid_token() -> None:
    result = _send(FakeBot(error=BadRequest("Chat not found")))
    assert result.status is DeliveryStatus.TOKEN_INVALID


def test_other_bad_request_is_error() -> None:
    result = _send(FakeBot(error=BadRequest("Message is too long")))
    assert result.status is DeliveryStatus.ERROR
    assert result.detail == "Message is too long"


def test_network_failure_is_error() -> None:
    result = _send(FakeBot(error=NetworkError("connection reset")))
    assert result.status is DeliveryStatus.ERROR
