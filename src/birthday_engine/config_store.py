from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from birthday_engine.document_store import write_text_atomic
from birthday_engine.gift_prompt import COUNTRY_CONFIG, DEFAULT_COUNTRY
from birthday_engine.rate_limiter import DEFAULT_MAX_REQUESTS, DEFAULT_WINDOW_SECONDS
from birthday_engine.reminder_service import DEFAULT_PAGE_SIZE
from birthday_engine.text_generation import DEFAULT_MODEL


@dataclass(frozen=True)
class AppConfig:
    timezone: str = "Europe/London"
    daily_send_time: str = "08:00"
    page_size: int = DEFAULT_PAGE_SIZE
    rate_limit_max_requests: int = DEFAULT_MAX_REQUESTS
    rate_limit_window_seconds: int = DEFAULT_WINDOW_SECONDS
    default_country: str = DEFAULT_COUNTRY
    gift_model: str = DEFAULT_MODEL


def _toml_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def parse_time_string(value: str) -> tuple[int, int]:
    pieces = value.split(":")
    if len(pieces) != 2:
        raise ValueError("daily_send_time must be in HH:MM format")

    hour, minute = pieces
    if not hour.isdigit() or not minute.isdigit():
        raise ValueError("daily_send_time must contain numeric hour/minute")

    hour_i = int(hour)
    minute_i = int(minute)
    if hour_i < 0 or hour_i > 23 or minute_i < 0 or minute_i > 59:
        raise ValueError("daily_send_time must be a valid 24-hour time")

    return hour_i, minute_i


def _positive(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{name} must be a positive integer")
    return value


def validate_config(config: AppConfig) -> AppConfig:
    timezone = config.timezone.strip()
    if not timezone:
        raise ValueError("timezone must not be empty")

    hour, minute = parse_time_string(config.daily_send_time.strip())

    default_country = config.default_country.strip().upper()
    if default_country not in COUNTRY_CONFIG:
        raise ValueError(f"default_country must be one of {sorted(COUNTRY_CONFIG)}")

    gift_model = config.gift_model.strip()
    if not gift_model:
        raise ValueError("gift_model must not be empty")

    return AppConfig(
        timezone=timezone,
        daily_send_time=f"{hour:02d}:{minute:02d}",
        page_size=_positive("page_size", config.page_size),
        rate_limit_max_requests=_positive("rate_limit_max_requests", config.rate_limit_max_requests),
        rate_limit_window_seconds=_positive("rate_limit_window_seconds", config.rate_limit_window_seconds),
        default_country=default_country,
        gift_model=gift_model,
    )


def load_config(path: Path) -> AppConfig:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("rb") as file_obj:
        data = tomllib.load(file_obj)

    reminders = data.get("reminders", {})
    gifts = data.get("gifts", {})
    defaults = AppConfig()

    config = AppConfig(
        timezone=str(reminders.get("timezone", defaults.timezone)),
        daily_send_time=str(reminders.get("daily_send_time", defaults.daily_send_time)),
        page_size=reminders.get("page_size", defaults.page_size),
        rate_limit_max_requests=gifts.get("rate_limit_max_requests", defaults.rate_limit_max_requests),
        rate_limit_window_seconds=gifts.get("rate_limit_window_seconds", defaults.rate_limit_window_seconds),
        default_country=str(gifts.get("default_country", defaults.default_country)),
        gift_model=str(gifts.get("model", defaults.gift_model)),
    )
    return validate_config(config)


def render_config(config: AppConfig) -> str:
    validated = validate_config(config)

    lines = [
        "[reminders]",
        f'timezone = "{_toml_escape(validated.timezone)}"',
        f'daily_send_time = "{validated.daily_send_time}"',
        f"page_size = {validated.page_size}",
        "",
        "[gifts]",
        f"rate_limit_max_requests = {validated.rate_limit_max_requests}",
        f"rate_limit_window_seconds = {validated.rate_limit_window_seconds}",
        f'default_country = "{validated.default_country}"',
        f'model = "{_toml_escape(validated.gift_model)}"',
    ]
    return "\n".join(lines) + "\n"


def save_config_atomic(path: Path, config: AppConfig) -> None:
    write_text_atomic(path, render_config(config))


def ensure_default_config(path: Path) -> None:
    if path.exists():
        return
    save_config_atomic(path, AppConfig())
