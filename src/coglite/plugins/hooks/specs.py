"""Hook specifications for coglite drive lifecycle events."""

from typing import Any
from uuid import UUID

from .markers import hook_spec


class DriveSpec:
    """Hook specifications for drive-level lifecycle events."""

    @hook_spec
    def before_drive(self, drive_id: UUID, name: str, depth: int) -> None:
        """
        Called when a drive starts, before the coroutine is first advanced.

        Args:
            drive_id: Unique identifier for the drive
            name: Name of the coroutine factory being driven
            depth: Nesting depth (0 for a top-level drive)
        """

    @hook_spec
    def after_drive(self, drive_id: UUID, name: str, result: Any, duration: float) -> None:
        """
        Called when a drive completes successfully.

        Args:
            drive_id: Unique identifier for the drive
            name: Name of the coroutine factory being driven
            result: Final value of the coroutine
            duration: Time from start to completion in seconds
        """

    @hook_spec
    def on_drive_error(
        self, drive_id: UUID, name: str, error: BaseException, duration: float
    ) -> None:
        """
        Called when a drive fails.

        Args:
            drive_id: Unique identifier for the drive
            name: Name of the coroutine factory being driven
            error: The error delivered to the drive's result future
            duration: Time from start to failure in seconds
        """

    @hook_spec
    def on_force_return(self, drive_id: UUID, name: str, value: Any) -> None:
        """
        Called when early termination of a drive is requested.

        Args:
            drive_id: Unique identifier for the drive
            name: Name of the coroutine factory being driven
            value: Value the coroutine is forced to return
        """


class StepSpec:
    """Hook specifications for per-step events (see `CogliteSettings.enable_step_hooks`)."""

    @hook_spec
    def on_suspend(self, drive_id: UUID, name: str, kind: Any, value: Any) -> None:
        """
        Called when the coroutine suspends on a yielded value.

        Args:
            drive_id: Unique identifier for the drive
            name: Name of the coroutine factory being driven
            kind: `SuspensionKind` of the yielded value
            value: The yielded value itself
        """

    @hook_spec
    def on_resume(self, drive_id: UUID, name: str, mode: Any, payload: Any) -> None:
        """
        Called right before the coroutine is advanced.

        Args:
            drive_id: Unique identifier for the drive
            name: Name of the coroutine factory being driven
            mode: `StepMode` used to advance (resume, throw or return)
            payload: Value sent, error injected, or forced return value
        """
