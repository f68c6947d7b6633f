# src/omniflow/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Components receive settings through constructors; nothing below reads env directly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

ENV_PREFIX = "OMNIFLOW"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


# Real environment variables win over .env entries.
load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


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


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.replace(",", " ").split() if p.strip()]
    return parts


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
    console_enabled: bool

    # ---- Storage ----
    data_dir: Path
    storage_backend: str  # "json" | "sqlite"
    sqlite_path: Path

    # ---- LLM (OpenAI-compatible) ----
    openai_api_key: Optional[str]
    openai_base_url: str
    llm_models: List[str]
    llm_max_tokens: int
    llm_temperature: float
    llm_connect_timeout_seconds: float
    llm_read_timeout_seconds: float

    # ---- Scheduler ----
    timezone: str
    scheduler_max_sleep_seconds: float
    cron_pending_tasks: str
    cron_daily_summary: str
    cron_log_cleanup: str
    cron_email_dispatch: str
    task_retention_days: int

    # ---- Leads ----
    lead_followup_days: int
    high_value_lead_score: int

    # ---- Email ----
    from_email: str
    from_name: str
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    smtp_use_tls: bool

    # ---- Workflow steps ----
    webhook_timeout_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "omniflow") or "omniflow"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/omniflow"))
        storage_backend = _env(_k("STORAGE_BACKEND"), "json").strip().lower() or "json"
        sqlite_path = _env_path(_k("SQLITE_PATH"), data_dir / "omniflow.sqlite3")

        # Accept the conventional OPENAI_API_KEY as a fallback.
        openai_api_key = _first_env(_k("OPENAI_API_KEY"), "OPENAI_API_KEY", default=None)
        openai_base_url = _env(_k("OPENAI_BASE_URL"), "https://api.openai.com/v1")
        llm_models = _env_list(_k("LLM_MODELS"), ["gpt-4o", "gpt-4o-mini"])
        llm_max_tokens = _env_int(_k("LLM_MAX_TOKENS"), 1500)
        llm_temperature = _env_float(_k("LLM_TEMPERATURE"), 0.7)
        llm_connect_timeout_seconds = _env_float(_k("LLM_CONNECT_TIMEOUT_SECONDS"), 5.0)
        llm_read_timeout_seconds = _env_float(_k("LLM_READ_TIMEOUT_SECONDS"), 60.0)

        timezone = _env(_k("TIMEZONE"), "America/New_York")
        scheduler_max_sleep_seconds = _env_float(_k("SCHEDULER_MAX_SLEEP_SECONDS"), 30.0)
        cron_pending_tasks = _env(_k("CRON_PENDING_TASKS"), "*/5 * * * *")
        cron_daily_summary = _env(_k("CRON_DAILY_SUMMARY"), "0 18 * * *")
        cron_log_cleanup = _env(_k("CRON_LOG_CLEANUP"), "0 2 * * 0")
        cron_email_dispatch = _env(_k("CRON_EMAIL_DISPATCH"), "*/5 * * * *")
        task_retention_days = _env_int(_k("TASK_RETENTION_DAYS"), 30)

        lead_followup_days = _env_int(_k("LEAD_FOLLOWUP_DAYS"), 3)
        high_value_lead_score = _env_int(_k("HIGH_VALUE_LEAD_SCORE"), 80)

        from_email = _first_env(_k("FROM_EMAIL"), "FROM_EMAIL", default="hello@omniflow.com") or ""
        from_name = _first_env(_k("FROM_NAME"), "FROM_NAME", default="OmniFlow Team") or ""
        smtp_host = (_first_env(_k("SMTP_HOST"), "SMTP_HOST", default="") or "").strip()
        smtp_port = _env_int(_k("SMTP_PORT"), _env_int("SMTP_PORT", 587))
        smtp_user = (_first_env(_k("SMTP_USER"), "SMTP_USER", default="") or "").strip()
        smtp_password = _first_env(_k("SMTP_PASSWORD"), "SMTP_PASS", default="") or ""
        smtp_use_tls = _env_bool(_k("SMTP_USE_TLS"), True)

        webhook_timeout_seconds = _env_float(_k("WEBHOOK_TIMEOUT_SECONDS"), 20.0)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            storage_backend=storage_backend,
            sqlite_path=sqlite_path,
            openai_api_key=openai_api_key,
            openai_base_url=openai_base_url,
            llm_models=llm_models,
            llm_max_tokens=llm_max_tokens,
            llm_temperature=llm_temperature,
            llm_connect_timeout_seconds=llm_connect_timeout_seconds,
            llm_read_timeout_seconds=llm_read_timeout_seconds,
            timezone=timezone,
            scheduler_max_sleep_seconds=scheduler_max_sleep_seconds,
            cron_pending_tasks=cron_pending_tasks,
            cron_daily_summary=cron_daily_summary,
            cron_log_cleanup=cron_log_cleanup,
            cron_email_dispatch=cron_email_dispatch,
            task_retention_days=task_retention_days,
            lead_followup_days=lead_followup_days,
            high_value_lead_score=high_value_lead_score,
            from_email=from_email,
            from_name=from_name,
            smtp_host=smtp_host,
            smtp_port=smtp_port,
            smtp_user=smtp_user,
            smtp_password=smtp_password,
            smtp_use_tls=smtp_use_tls,
            webhook_timeout_seconds=webhook_timeout_seconds,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
