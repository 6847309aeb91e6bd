# config.py
import logging
import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from dotenv import load_dotenv

from errors import ConfigurationError

# OPENAI_API_KEY は .env か環境変数で設定する (UI から入力も可)
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_MAX_WIDTH = 1600
DEFAULT_JPEG_QUALITY = 80
DEFAULT_TIMEOUT = 60.0

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class Settings:
    api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    max_width: int = DEFAULT_MAX_WIDTH
    jpeg_quality: int = DEFAULT_JPEG_QUALITY
    timeout: float = DEFAULT_TIMEOUT
    log_level: str = "INFO"

    def with_api_key(self, api_key: str) -> "Settings":
        return replace(self, api_key=api_key.strip() or None)

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)


def _number(env: Mapping[str, str], key: str, default, cast):
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(f"{key} must be positive, got {raw!r}")
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    if env is None:
        load_dotenv()
        env = os.environ

    quality = _number(env, "BIZCARD_JPEG_QUALITY", DEFAULT_JPEG_QUALITY, int)
    if quality > 100:
        raise ConfigurationError(f"BIZCARD_JPEG_QUALITY must be 1-100, got {quality}")

    return Settings(
        api_key=(env.get("OPENAI_API_KEY") or "").strip() or None,
        model=env.get("BIZCARD_MODEL") or DEFAULT_MODEL,
        max_width=_number(env, "BIZCARD_MAX_WIDTH", DEFAULT_MAX_WIDTH, int),
        jpeg_quality=quality,
        timeout=_number(env, "BIZCARD_TIMEOUT", DEFAULT_TIMEOUT, float),
        log_level=(env.get("BIZCARD_LOG_LEVEL") or "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    # Streamlit は再実行のたびにスクリプトを読み込むので二重登録しない
    if any(getattr(h, "_bizcard", False) for h in root.handlers):
        root.setLevel(level)
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._bizcard = True
    root.addHandler(handler)
    root.setLevel(level)
