# src/omniflow/errors.py

"""
Error taxonomy shared by every component.

Pipeline stages (tasks, workflow steps, scheduled jobs) convert failures into
in-band status fields; only StorageError and SchedulingError are meant to reach
the caller of a core operation.
"""

from __future__ import annotations


class OmniFlowError(Exception):
    """Base class for all application errors."""


class ValidationError(OmniFlowError, ValueError):
    """Malformed or missing input."""


class NotFoundError(OmniFlowError, LookupError):
    """Referenced entity does not exist."""


class ServiceError(OmniFlowError):
    """Text-completion collaborator failure (timeout, quota, bad response)."""


class StorageError(OmniFlowError):
    """Read/write failure on a durable collection."""


class StepError(OmniFlowError):
    """A workflow step could not run. Captured per step, never propagated."""


class SchedulingError(OmniFlowError, ValueError):
    """Invalid cron expression or job registration."""
