"""Conftest for all pytest configuration - fixtures, hooks, and doctest setup."""

import doctest

import pytest

from coglite.plugins.manager import _initialize_plugin_system
from coglite.settings import CogliteSettings
from coglite.settings import set_global_settings

# Doctest Configuration


def pytest_configure(config):
    """Configure pytest with custom doctest options."""
    doctest.ELLIPSIS_MARKER = "..."


def pytest_collection_modifyitems(items):
    """Automatically mark doctest items with the 'doctest' marker."""
    for item in items:
        if isinstance(item, pytest.DoctestItem):
            item.add_marker(pytest.mark.doctest)


# Global state


@pytest.fixture(autouse=True)
def reset_global_state():
    """Give every test fresh global settings and an empty global plugin manager."""
    set_global_settings(CogliteSettings())
    _initialize_plugin_system()
    yield
    set_global_settings(CogliteSettings())
    _initialize_plugin_system()
