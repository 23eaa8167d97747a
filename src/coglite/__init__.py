"""Coglite: drive generator-based coroutines to completion on asyncio, co-style."""

__version__ = "0.1.0"

from . import settings
from .coroutines import Coroutine
from .coroutines import CoroutineHandle
from .coroutines import ForcedReturn
from .coroutines import Step
from .driver import DriveFuture
from .driver import Driver
from .driver import StepMode
from .driver import drive
from .driver import run
from .driver import wrap
from .exceptions import CogliteError
from .exceptions import InvalidCoroutineError
from .exceptions import NestingDepthError
from .exceptions import PropagatedBodyError
from .exceptions import UnsupportedYieldError
from .plugins.manager import _initialize_plugin_system
from .suspension import SuspensionKind

# Initialize hooks system on module import
_initialize_plugin_system()

__all__ = [
    "CogliteError",
    "Coroutine",
    "CoroutineHandle",
    "DriveFuture",
    "Driver",
    "ForcedReturn",
    "InvalidCoroutineError",
    "NestingDepthError",
    "PropagatedBodyError",
    "Step",
    "StepMode",
    "SuspensionKind",
    "UnsupportedYieldError",
    "drive",
    "run",
    "settings",
    "wrap",
]
