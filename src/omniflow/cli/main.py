# src/omniflow/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then:
- installs the default automation jobs and every active scheduled workflow,
- runs the scheduler loop in the background,
- runs the ops console (optional) until /exit, or waits for SIGINT/SIGTERM.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..core.state import AppState
from ..logging_setup import setup_logging
from ..scheduling.jobs import install_default_jobs, schedule_active_workflows
from .console import run_console_loop

logger = logging.getLogger(__name__)


def _shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    # JSON backend keeps no handles; SQLite uses short-lived connections per call.
    backend = state.backend
    close = getattr(backend, "close", None)
    if callable(close):
        try:
            close()
        except Exception:
            logger.debug("Storage close failed.", exc_info=True)


async def run(state: AppState) -> None:
    settings = state.settings
    scheduler = state.scheduler

    install_default_jobs(scheduler, state)
    scheduled = schedule_active_workflows(scheduler, state.workflow_engine, state.workflow_store)
    if scheduled:
        logger.info("Scheduled workflows: %s", ", ".join(scheduled))

    stop_main = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _handle_signal(signum: int) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not every platform supports loop signal handlers (e.g. Windows).
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, _handle_signal, sig)

    scheduler.start()
    try:
        if getattr(settings, "console_enabled", True):
            console = asyncio.create_task(run_console_loop(state))
            waiter = asyncio.create_task(stop_main.wait())
            await asyncio.wait({console, waiter}, return_when=asyncio.FIRST_COMPLETED)
            waiter.cancel()
            # A console blocked in input() cannot be interrupted; it ends with the process.
        else:
            logger.info("Console disabled. Running scheduled automations only. Press Ctrl+C to stop.")
            await stop_main.wait()
    finally:
        await scheduler.stop()


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_file = setup_logging(
        log_dir=getattr(settings, "data_dir", ".local/omniflow"),
        console_level=console_level,
    )
    logger.info("Starting %s (log file: %s)", getattr(settings, "app_name", "omniflow"), log_file)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    try:
        asyncio.run(run(state))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
