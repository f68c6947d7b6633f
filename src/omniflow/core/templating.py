# src/omniflow/core/templating.py

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][\w.]*)\s*\}\}")


def lookup(data: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted path ("previousResult.output") in nested mappings; None if absent."""
    cur: Any = data
    for part in path.split("."):
        if not isinstance(cur, Mapping) or part not in cur:
            return None
        cur = cur[part]
    return cur


def substitute(template: str, fields: Mapping[str, Any]) -> str:
    """
    Replace {{field}} placeholders with values from fields.

    Placeholders whose field is missing (or None) are left untouched; this is
    not an error.
    """

    def _repl(m: re.Match[str]) -> str:
        value = lookup(fields, m.group(1))
        return m.group(0) if value is None else str(value)

    return _PLACEHOLDER.sub(_repl, template or "")
