"""Pytest configuration and fixtures for csi-sanity unit tests."""

import os
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

from csi_sanity.config import Config

tests_root = Path(__file__).parent.parent.parent
if str(tests_root) not in sys.path:
    sys.path.insert(0, str(tests_root))


class FakeChannel:
    """Stand-in for a gRPC channel that records close calls."""

    def __init__(self, address: str, fail_close: bool = False) -> None:
        self.address = address
        self.fail_close = fail_close
        self.close_calls = 0

    def close(self) -> None:
        self.close_calls += 1
        if self.fail_close:
            raise RuntimeError(f"close failed for {self.address}")


class FakeDialer:
    """Dial function returning FakeChannels and recording addresses."""

    def __init__(self) -> None:
        self.dialed: list[str] = []
        self.channels: list[FakeChannel] = []
        self.fail_addresses: set[str] = set()

    def __call__(self, address: str) -> FakeChannel:
        self.dialed.append(address)
        if address in self.fail_addresses:
            raise ConnectionRefusedError(f"connection refused: {address}")
        channel = FakeChannel(address)
        self.channels.append(channel)
        return channel


@pytest.fixture
def fake_dial() -> FakeDialer:
    """Provide a recording dial function."""
    return FakeDialer()


@pytest.fixture
def make_script(tmp_path: Path) -> Callable[[str, str], str]:
    """Create executable shell scripts inside tmp_path.

    Returns
    -------
    Callable[[str, str], str]
        Function taking a script name and body, returning the script path
    """

    def _make(name: str, body: str) -> str:
        script = tmp_path / name
        script.write_text(f"#!/bin/sh\n{body}\n")
        os.chmod(script, 0o755)
        return str(script)

    return _make


@pytest.fixture
def sanity_config(tmp_path: Path) -> Config:
    """Config with target and staging paths under tmp_path."""
    return Config(
        address="unix:///tmp/csi.sock",
        target_path=str(tmp_path / "csi-mount"),
        staging_path=str(tmp_path / "csi-staging"),
    )
