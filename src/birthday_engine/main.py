from __future__ import annotations

import logging
from datetime import datetime, time
from zoneinfo import ZoneInfo

from telegram.ext import Application, CallbackContext

from birthday_engine.bot_handlers import HandlerDependencies, build_handlers
from birthday_engine.config_store import AppConfig, ensure_default_config, load_config, parse_time_string
from birthday_engine.delivery import TelegramTransport
from birthday_engine.document_store import JsonDocumentStore
from birthday_engine.gift_service import GiftService
from birthday_engine.rate_limiter import RateLimiter
from birthday_engine.reminder_service import ReminderService
from birthday_engine.settings import Settings, load_settings
from birthday_engine.text_generation import OpenAITextGenerator

LOGGER = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_gift_service(settings: Settings, config: AppConfig, store: JsonDocumentStore) -> GiftService | None:
    if settings.openai_api_key is None:
        LOGGER.warning("OPENAI_API_KEY missing; gift suggestions are disabled")
        return None

    return GiftService(
        generator=OpenAITextGenerator(api_key=settings.openai_api_key, model=config.gift_model),
        rate_limiter=RateLimiter(
            store,
            max_requests=config.rate_limit_max_requests,
            window_seconds=config.rate_limit_window_seconds,
        ),
        default_country=config.default_country,
    )


async def scheduled_reminder_callback(context: CallbackContext) -> None:
    service: ReminderService = context.application.bot_data["reminder_service"]
    config: AppConfig = context.application.bot_data["config"]
    await service.dispatch(datetime.now(ZoneInfo(config.timezone)))


async def startup_catchup(application: Application) -> None:
    config: AppConfig = application.bot_data["config"]
    now = datetime.now(ZoneInfo(config.timezone))

    hour, minute = parse_time_string(config.daily_send_time)
    scheduled = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if now >= scheduled:
        # Reminders already sent today are skipped by the reminder log.
        service: ReminderService = application.bot_data["reminder_service"]
        await service.dispatch(now)


def main() -> None:
    configure_logging()

    settings = load_settings()
    ensure_default_config(settings.app_config_path)
    config = load_config(settings.app_config_path)

    tz = ZoneInfo(config.timezone)
    hour, minute = parse_time_string(config.daily_send_time)

    store = JsonDocumentStore(settings.document_store_path)
    application = Application.builder().token(settings.telegram_bot_token).build()
    application.bot_data["config"] = config
    application.bot_data["handler_deps"] = HandlerDependencies(
        store=store,
        config=config,
        gift_service=build_gift_service(settings, config, store),
    )
    application.bot_data["reminder_service"] = ReminderService(
        store=store,
        transport=TelegramTransport(application.bot),
        page_size=config.page_size,
    )

    for handler in build_handlers():
        application.add_handler(handler)

    application.job_queue.run_daily(
        scheduled_reminder_callback,
        time=time(hour=hour, minute=minute, tzinfo=tz),
        name="daily-birthday-reminders",
    )

    application.post_init = startup_catchup
    application.run_polling()


if __name__ == "__main__":
    main()
