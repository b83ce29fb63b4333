"""Shared fixtures: credentials, fake tools and a registry built from them."""

import pytest

from fakes import EchoTool, FlakyTool, SandboxDownTool, SlowTool, fake_credentials
from toolstream.core.tool_registry import ToolRegistry


@pytest.fixture
def credentials():
    return fake_credentials()


@pytest.fixture
def echo_tool(credentials):
    return EchoTool(credentials)


@pytest.fixture
def slow_tool(credentials):
    return SlowTool(credentials)


@pytest.fixture
def registry(credentials, echo_tool, slow_tool):
    """A registry holding only in-process tools."""
    return ToolRegistry([echo_tool, slow_tool, FlakyTool(credentials), SandboxDownTool(credentials)])
