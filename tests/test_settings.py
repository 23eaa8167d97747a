"""Tests for global settings."""

import asyncio
from dataclasses import FrozenInstanceError

import pytest

from coglite.driver import Driver
from coglite.settings import CogliteSettings
from coglite.settings import get_global_settings
from coglite.settings import set_global_settings


class TestSettings:
    """Tests for CogliteSettings and the global accessors."""

    def test_defaults(self) -> None:
        """Defaults allow unlimited nesting and fire step hooks."""
        settings = get_global_settings()
        assert settings.max_nesting_depth is None
        assert settings.enable_step_hooks is True

    def test_set_global(self) -> None:
        """Global settings can be replaced."""
        custom = CogliteSettings(max_nesting_depth=3)
        set_global_settings(custom)
        assert get_global_settings() is custom

    def test_frozen(self) -> None:
        """Settings are immutable."""
        with pytest.raises(FrozenInstanceError):
            get_global_settings().max_nesting_depth = 1  # type: ignore[misc]

    def test_driver_captures_settings(self) -> None:
        """Drivers keep the settings that were global when they were created."""

        def body():
            yield 1

        original = get_global_settings()
        driver = Driver.create(body)
        set_global_settings(CogliteSettings(max_nesting_depth=0))
        assert driver.settings is original

        async def main():
            return await driver.start()

        assert asyncio.run(main()) is None
