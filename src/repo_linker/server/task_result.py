"""Task result normalization helpers for the HTTP API."""

from __future__ import annotations

from typing import Any

from repo_linker.lib.models import ScanReport

__all__ = ["normalize_task_result"]


def normalize_task_result(status: str, raw_result: Any) -> dict[str, Any] | None:
    """Normalize Celery task results into JSON-serializable dicts.

    Failed tasks hand back the raised exception; a scan run eagerly may hand
    back its :class:`ScanReport`. Both are flattened so the API never leaks
    non-serializable objects.
    """
    if raw_result is None:
        return None
    if isinstance(raw_result, dict):
        return raw_result
    if isinstance(raw_result, ScanReport):
        return raw_result.to_dict()
    if isinstance(raw_result, BaseException):
        return {
            "error": str(raw_result),
            "error_type": type(raw_result).__name__,
            "status": status,
        }
    return {
        "value": str(raw_result),
        "value_type": type(raw_result).__name__,
        "status": status,
    }
