"""Markers used to declare coglite hook specifications and implementations."""

from pluggy import HookimplMarker
from pluggy import HookspecMarker

HOOK_NAMESPACE = "coglite"

hook_spec = HookspecMarker(HOOK_NAMESPACE)
"""Marker for coglite hook specifications."""

hook_impl = HookimplMarker(HOOK_NAMESPACE)
"""Marker for coglite hook implementations."""
