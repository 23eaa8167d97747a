"""Shared utility helpers for coglite."""

from __future__ import annotations

import reprlib
from collections.abc import Mapping
from typing import Any


def build_repr(class_name: str, *leading: str, kwargs: Mapping[str, Any] | None = None) -> str:
    """Build a concise repr string: ``ClassName(leading…, k=v, …)``."""
    parts = list(leading)
    if kwargs:
        parts.extend(f"{k}={reprlib.Repr().repr(v)}" for k, v in kwargs.items())
    return f"{class_name}({', '.join(parts)})"


def callable_name(obj: Any) -> str:
    """Best-effort human readable name for a coroutine factory or coroutine object."""
    for attr in ("__qualname__", "__name__"):
        name = getattr(obj, attr, None)
        if isinstance(name, str):
            return name
    code = getattr(obj, "gi_code", None)
    if code is not None:
        return code.co_name
    return type(obj).__name__
