# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Put them in .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "OMNIFLOW_APP_NAME": "App display name (default: omniflow).",
    "OMNIFLOW_LOG_LEVEL": "Console logging level (default: INFO).",
    "OMNIFLOW_CONSOLE_ENABLED": "Run the interactive ops console (true/false).",
    # Storage (gitignored)
    "OMNIFLOW_DATA_DIR": "Local data directory; JSON collections and logs live here (default: .local/omniflow).",
    "OMNIFLOW_STORAGE_BACKEND": "Collection backend: json or sqlite (default: json).",
    "OMNIFLOW_SQLITE_PATH": "SQLite path for the sqlite backend (default: <data_dir>/omniflow.sqlite3).",
    # LLM (OpenAI-compatible)
    "OMNIFLOW_OPENAI_API_KEY": "API key (OPENAI_API_KEY is accepted too). Without it the offline client is used.",
    "OMNIFLOW_OPENAI_BASE_URL": "API base URL (default: https://api.openai.com/v1).",
    "OMNIFLOW_LLM_MODELS": "Comma/space separated list of models to try in order (default: gpt-4o, gpt-4o-mini).",
    "OMNIFLOW_LLM_MAX_TOKENS": "Max tokens per task completion (default: 1500).",
    "OMNIFLOW_LLM_TEMPERATURE": "Sampling temperature for tasks (default: 0.7).",
    "OMNIFLOW_LLM_CONNECT_TIMEOUT_SECONDS": "HTTP connect timeout (default: 5).",
    "OMNIFLOW_LLM_READ_TIMEOUT_SECONDS": "HTTP read timeout (default: 60).",
    # Scheduler
    "OMNIFLOW_TIMEZONE": "Timezone cron expressions are evaluated in (default: America/New_York).",
    "OMNIFLOW_SCHEDULER_MAX_SLEEP_SECONDS": "Upper bound for one scheduler sleep (default: 30).",
    "OMNIFLOW_CRON_PENDING_TASKS": "pending-task-checker schedule (default: */5 * * * *).",
    "OMNIFLOW_CRON_DAILY_SUMMARY": "daily-summary schedule (default: 0 18 * * *).",
    "OMNIFLOW_CRON_LOG_CLEANUP": "log-cleanup schedule (default: 0 2 * * 0).",
    "OMNIFLOW_CRON_EMAIL_DISPATCH": "nurturing-email-dispatch schedule (default: */5 * * * *).",
    "OMNIFLOW_TASK_RETENTION_DAYS": "log-cleanup deletes tasks older than this (default: 30).",
    # Leads
    "OMNIFLOW_LEAD_FOLLOWUP_DAYS": "Days without interaction before a lead needs follow-up (default: 3).",
    "OMNIFLOW_HIGH_VALUE_LEAD_SCORE": "Minimum score of a high-value lead (default: 80).",
    # Email (SMTP optional; without a host emails go to the manual-send outbox)
    "OMNIFLOW_FROM_EMAIL": "Sender address (FROM_EMAIL is accepted too).",
    "OMNIFLOW_FROM_NAME": "Sender display name (FROM_NAME is accepted too).",
    "OMNIFLOW_SMTP_HOST": "SMTP host (SMTP_HOST is accepted too).",
    "OMNIFLOW_SMTP_PORT": "SMTP port (default: 587).",
    "OMNIFLOW_SMTP_USER": "SMTP username (SMTP_USER is accepted too).",
    "OMNIFLOW_SMTP_PASSWORD": "SMTP password (SMTP_PASS is accepted too).",
    "OMNIFLOW_SMTP_USE_TLS": "Use STARTTLS (default: true).",
    # Workflow steps
    "OMNIFLOW_WEBHOOK_TIMEOUT_SECONDS": "Timeout for webhook-call steps and SMTP (default: 20).",
}
