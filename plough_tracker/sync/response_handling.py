"""Helpers for interpreting sync endpoint responses."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

__all__ = ["extract_error", "is_success"]


def is_success(data: Any) -> bool:
    """The endpoint acknowledges a payload with ``{"result": "success"}``."""

    return isinstance(data, dict) and data.get("result") == "success"


def extract_error(resp: Optional[requests.Response]) -> Optional[str]:
    """Return a compact error string from a failed response, if present."""

    if resp is None:
        return None
    data = _safe_json(resp)
    if data is None:
        return _extract_error_text(resp)
    if not isinstance(data, dict):
        return None
    parts = _collect_error_parts(data)
    return " | ".join(parts) if parts else None


def _safe_json(resp: requests.Response) -> Optional[Any]:
    try:
        return resp.json()
    except ValueError as exc:
        logging.debug(
            "Failed to decode JSON from %s: %s", getattr(resp, "url", "?"), exc
        )
        return None


def _extract_error_text(resp: requests.Response) -> Optional[str]:
    """Best-effort plain-text extraction when JSON parsing fails."""

    text = getattr(resp, "text", "")
    if not isinstance(text, str):
        return None
    trimmed = text.strip()
    if not trimmed:
        return None
    return (trimmed[:297] + "...") if len(trimmed) > 300 else trimmed


def _collect_error_parts(data: Dict[str, Any]) -> List[str]:
    parts: List[str] = []
    for key in ("result", "message", "error"):
        value = data.get(key)
        if value and value != "success":
            parts.append(f"{key}={value}")
    return parts
