"""Tests for global and per-drive hooks."""

import asyncio

import pytest

from coglite import run
from coglite.driver import Driver
from coglite.driver import StepMode
from coglite.exceptions import PropagatedBodyError
from coglite.plugins import hook_impl
from coglite.plugins.manager import create_hook_manager_with_plugins
from coglite.plugins.manager import get_hook_manager
from coglite.plugins.manager import register_hooks
from coglite.plugins.manager import register_plugins_entry_points
from coglite.plugins.manager import unregister_hooks
from coglite.settings import CogliteSettings
from coglite.suspension import SuspensionKind


class Recorder:
    """Records every hook call."""

    def __init__(self):
        self.events = []

    @hook_impl
    def before_drive(self, drive_id, name, depth):
        self.events.append(("before_drive", name, depth))

    @hook_impl
    def after_drive(self, drive_id, name, result, duration):
        self.events.append(("after_drive", name, result))

    @hook_impl
    def on_drive_error(self, drive_id, name, error, duration):
        self.events.append(("on_drive_error", name, type(error).__name__))

    @hook_impl
    def on_force_return(self, drive_id, name, value):
        self.events.append(("on_force_return", name, value))

    @hook_impl
    def on_suspend(self, drive_id, name, kind, value):
        self.events.append(("on_suspend", name, kind))

    @hook_impl
    def on_resume(self, drive_id, name, mode, payload):
        self.events.append(("on_resume", name, mode))


def drive_with(body, hooks, settings=None):
    async def main():
        return await Driver.create(body, hooks=hooks, settings=settings).start()

    return asyncio.run(main())


def one_step():
    return (yield 5) + 1


class TestPerDriveHooks:
    """Tests hooks passed to a single drive."""

    def test_lifecycle_order(self) -> None:
        """Hooks fire in lifecycle order."""
        recorder = Recorder()
        assert drive_with(one_step, [recorder]) == 6
        assert recorder.events == [
            ("before_drive", "one_step", 0),
            ("on_resume", "one_step", StepMode.RESUME),
            ("on_suspend", "one_step", SuspensionKind.VALUE),
            ("on_resume", "one_step", StepMode.RESUME),
            ("after_drive", "one_step", 6),
        ]

    def test_step_hooks_disabled(self) -> None:
        """Per-step hooks are skipped when disabled in settings."""
        recorder = Recorder()
        drive_with(one_step, [recorder], settings=CogliteSettings(enable_step_hooks=False))
        assert [event[0] for event in recorder.events] == ["before_drive", "after_drive"]

    def test_error_hook(self) -> None:
        """Failed drives report the delivered error."""

        def body():
            yield None
            raise ValueError("bad")

        recorder = Recorder()
        with pytest.raises(PropagatedBodyError):
            drive_with(body, [recorder])
        assert recorder.events[-1] == ("on_drive_error", "body", "PropagatedBodyError")

    def test_nested_drives_share_hooks(self) -> None:
        """Nested drives report through the parent's hooks with their depth."""

        def child():
            return (yield 1)

        def parent():
            return (yield child)

        recorder = Recorder()
        assert drive_with(parent, [recorder]) == 1
        starts = [event for event in recorder.events if event[0] == "before_drive"]
        assert starts == [("before_drive", "parent", 0), ("before_drive", "child", 1)]

    def test_force_return_hook(self) -> None:
        """Forced returns are reported."""
        recorder = Recorder()

        async def main():
            never = asyncio.get_running_loop().create_future()

            def body():
                yield never

            driver = Driver.create(body, hooks=[recorder])
            future = driver.start()
            driver.force_return("stop")
            return await future

        assert asyncio.run(main()) == "stop"
        assert ("on_force_return", "body", "stop") in recorder.events
        assert ("on_resume", "body", StepMode.RETURN) in recorder.events

    def test_failing_hook_fails_drive(self) -> None:
        """An error raised by a hook is delivered through the drive's future."""

        class Exploding:
            @hook_impl
            def after_drive(self, drive_id, name, result, duration):
                raise RuntimeError("hook failed")

        with pytest.raises(RuntimeError, match="hook failed"):
            drive_with(one_step, [Exploding()])

    def test_failing_force_return_hook_fails_drive(self) -> None:
        """An error raised while reporting a forced return settles the drive with it."""

        class Exploding:
            @hook_impl
            def on_force_return(self, drive_id, name, value):
                raise ValueError("force hook failed")

        async def main():
            never = asyncio.get_running_loop().create_future()

            def body():
                yield never

            future = Driver.create(body, hooks=[Exploding()]).start()
            assert future.force_return("x") is True
            assert future.force_return("y") is False
            with pytest.raises(ValueError, match="force hook failed"):
                await asyncio.wait_for(future, 1)

        asyncio.run(main())

    def test_hook_class_rejected(self) -> None:
        """Hooks must be instances, not classes."""
        with pytest.raises(TypeError, match="instances"):
            create_hook_manager_with_plugins([Recorder])


class TestGlobalHooks:
    """Tests globally registered hooks."""

    def test_register_and_unregister(self) -> None:
        """Registered hooks see every drive until unregistered."""
        recorder = Recorder()
        register_hooks(recorder)
        assert get_hook_manager().is_registered(recorder)

        assert run(one_step) == 6
        assert ("after_drive", "one_step", 6) in recorder.events

        unregister_hooks(recorder)
        recorder.events.clear()
        run(one_step)
        assert recorder.events == []

    def test_register_twice_is_noop(self) -> None:
        """Registering the same instance twice keeps a single registration."""
        recorder = Recorder()
        register_hooks(recorder, recorder)
        run(one_step)
        assert [event[0] for event in recorder.events].count("before_drive") == 1

    def test_register_class_rejected(self) -> None:
        """Hook classes are rejected with a helpful message."""
        with pytest.raises(TypeError, match="forgotten the `\\(\\)`"):
            register_hooks(Recorder)

    def test_global_hooks_combined_with_per_drive(self) -> None:
        """Per-drive managers include the global hooks."""
        global_recorder = Recorder()
        local_recorder = Recorder()
        register_hooks(global_recorder)

        drive_with(one_step, [local_recorder])
        assert global_recorder.events == local_recorder.events != []

    def test_entry_points(self) -> None:
        """Loading entry points with no installed plugins registers nothing."""
        before = len(get_hook_manager().get_plugins())
        register_plugins_entry_points()
        assert len(get_hook_manager().get_plugins()) >= before
