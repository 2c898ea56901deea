from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    telegram_bot_token: str
    openai_api_key: str | None
    app_config_path: Path
    document_store_path: Path


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        raise ValueError(f"Missing required environment variable: {name}")
    return value.strip()


def _optional_env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def load_settings() -> Settings:
    root = Path.cwd()

    return Settings(
        telegram_bot_token=_required_env("TELEGRAM_BOT_TOKEN"),
        openai_api_key=_optional_env("OPENAI_API_KEY"),
        app_config_path=Path(os.getenv("APP_CONFIG_PATH", root / "config" / "app.toml")),
        document_store_path=Path(os.getenv("DOCUMENT_STORE_PATH", root / "data" / "store.json")),
    )
