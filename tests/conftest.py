"""Shared test fixtures."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from botdetector.lists import read_rule_list
from botdetector.steamid import STEAM64_BASE


DATA_DIR = Path(__file__).resolve().parent.parent / 'data'

ALICE = 76561197960287930       # [U:1:22202]
OMEGA = STEAM64_BASE + 1234567   # [U:1:1234567]
BOB = STEAM64_BASE + 7654321     # [U:1:7654321]
SWIFT = STEAM64_BASE + 5550001   # [U:1:5550001]


class FakeClock:
    """Manually advanced clock for lifecycle tests."""

    def __init__(self) -> None:
        self.now = datetime(2026, 10, 19, 21, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture(scope='session')
def data_dir() -> Path:
    """Path to the data directory."""
    return DATA_DIR


@pytest.fixture(scope='session')
def dump_text() -> str:
    """Sample G15 dump."""
    return (DATA_DIR / 'g15_dump.txt').read_text(encoding='utf-8')


@pytest.fixture(scope='session')
def console_log() -> str:
    """Sample console log capture."""
    return (DATA_DIR / 'console.log').read_text(encoding='utf-8')


@pytest.fixture(scope='session')
def playerlist():
    """Identity list from playerlist.json."""
    return read_rule_list(DATA_DIR / 'playerlist.json')


@pytest.fixture(scope='session')
def name_rules():
    """Name rule list from rules.json."""
    return read_rule_list(DATA_DIR / 'rules.json')


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
