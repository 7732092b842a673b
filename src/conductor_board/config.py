# src/conductor_board/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Malformed values fall back to defaults instead of failing startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "CONDUCTOR"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- LLM / OpenRouter ----
    openrouter_api_key: str | None
    openrouter_base_url: str
    llm_models: list[str]
    extra_headers: dict[str, str]
    llm_connect_timeout_seconds: float
    llm_read_timeout_seconds: float

    # ---- Live feed ----
    feed_url: str
    feed_open_timeout_seconds: float

    # ---- Simulation ----
    tick_interval_seconds: float
    progress_seed: int
    progress_step_min: int
    progress_step_max: int
    demo_latency_seconds: float

    # ---- Board ----
    log_capacity: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "conductor-board")
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/conductor"))

        openrouter_api_key = _first_env(_k("OPENROUTER_API_KEY"), "OPENROUTER_API_KEY", default=None)
        openrouter_base_url = _env(_k("OPENROUTER_BASE_URL"), "https://openrouter.ai/api/v1")

        http_referer = _env(_k("HTTP_REFERER"), "https://example.com")
        title = _env(_k("APP_TITLE"), app_name)
        extra_headers = {
            "HTTP-Referer": http_referer,
            "X-Title": title,
        }

        llm_models = _env_list(
            _k("LLM_MODELS"),
            [
                "google/gemini-2.0-flash-exp:free",
                "qwen/qwen-2.5-72b-instruct:free",
                "deepseek/deepseek-chat-v3-0324:free",
            ],
        )

        connect_timeout = _env_float(_k("LLM_CONNECT_TIMEOUT_SECONDS"), 5.0)
        read_timeout = _env_float(_k("LLM_READ_TIMEOUT_SECONDS"), 30.0)

        feed_url = _env(_k("FEED_URL"), "ws://localhost:8080")
        feed_open_timeout = _env_float(_k("FEED_OPEN_TIMEOUT_SECONDS"), 10.0)

        tick_interval = _env_float(_k("TICK_INTERVAL_SECONDS"), 2.0)
        progress_seed = _env_int(_k("PROGRESS_SEED"), 5)
        step_min = _env_int(_k("PROGRESS_STEP_MIN"), 5)
        step_max = _env_int(_k("PROGRESS_STEP_MAX"), 19)
        demo_latency = _env_float(_k("DEMO_LATENCY_SECONDS"), 0.8)

        log_capacity = _env_int(_k("LOG_CAPACITY"), 100)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            openrouter_api_key=openrouter_api_key,
            openrouter_base_url=openrouter_base_url,
            llm_models=llm_models,
            extra_headers=extra_headers,
            llm_connect_timeout_seconds=max(0.5, connect_timeout),
            llm_read_timeout_seconds=max(1.0, read_timeout),
            feed_url=feed_url,
            feed_open_timeout_seconds=max(0.5, feed_open_timeout),
            tick_interval_seconds=max(0.05, tick_interval),
            progress_seed=max(1, min(99, progress_seed)),
            progress_step_min=max(1, min(step_min, step_max)),
            progress_step_max=max(1, step_min, step_max),
            demo_latency_seconds=max(0.0, demo_latency),
            log_capacity=max(1, log_capacity),
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
