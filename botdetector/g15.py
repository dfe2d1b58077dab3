"""Parser for the game's G15 debug dump of networked player attributes."""

import logging
import re
from dataclasses import dataclass, field

from botdetector import InvalidValueError
from botdetector.steamid import account_id_to_steam64

log = logging.getLogger(__name__)

# Hard client-capacity bound of the dump format
MAX_PLAYERS = 101

_INT32_MIN = -(2 ** 31)
_INT32_MAX = 2 ** 31 - 1

_LINE_RE = re.compile(
    r'^(m_szName|m_iPing|m_iScore|m_iDeaths|m_bConnected|m_iTeam|m_bAlive'
    r'|m_iHealth|m_iAccountID|m_bValid|m_iUserID)\[(\d+)]\s(integer|bool|string)\s\((.+?)?\)$',
    re.ASCII,
)
_INT_RE = re.compile(r'^[+-]?\d+$', re.ASCII)

_TRUE_VALUES = {'1', 't', 'T', 'true', 'TRUE', 'True'}


def _strings() -> list[str]:
    return [''] * MAX_PLAYERS


def _ints() -> list[int]:
    return [0] * MAX_PLAYERS


def _bools() -> list[bool]:
    return [False] * MAX_PLAYERS


def _sets() -> list[set[str]]:
    return [set() for _ in range(MAX_PLAYERS)]


@dataclass
class DumpPlayer:
    """One G15 snapshot as parallel arrays indexed by client slot."""

    names: list[str] = field(default_factory=_strings)
    ping: list[int] = field(default_factory=_ints)
    score: list[int] = field(default_factory=_ints)
    deaths: list[int] = field(default_factory=_ints)
    connected: list[bool] = field(default_factory=_bools)
    team: list[int] = field(default_factory=_ints)
    alive: list[bool] = field(default_factory=_bools)
    health: list[int] = field(default_factory=_ints)
    steam_id: list[int] = field(default_factory=_ints)
    valid: list[bool] = field(default_factory=_bools)
    user_id: list[int] = field(default_factory=_ints)
    # Names of the fields above that a dump line populated, per slot
    present: list[set[str]] = field(default_factory=_sets)

    def reset(self) -> None:
        """Restore every slot to its default value in place."""
        for i in range(MAX_PLAYERS):
            self.names[i] = ''
            self.ping[i] = 0
            self.score[i] = 0
            self.deaths[i] = 0
            self.connected[i] = False
            self.team[i] = 0
            self.alive[i] = False
            self.health[i] = 0
            self.steam_id[i] = 0
            self.valid[i] = False
            self.user_id[i] = 0
            self.present[i].clear()

    def valid_count(self) -> int:
        return sum(1 for v in self.valid if v)

    def has(self, index: int, name: str) -> bool:
        """Check whether the dump carried a line for this slot field."""
        return name in self.present[index]


def int_value(value: str, default: int = 0) -> int:
    """Parse a signed 32-bit integer, returning ``default`` on failure."""
    if not _INT_RE.match(value):
        return default
    number = int(value)
    if number < _INT32_MIN or number > _INT32_MAX:
        return default
    return number


def bool_value(value: str) -> bool:
    """Parse a boolean; anything unrecognised is False."""
    return value in _TRUE_VALUES


def _steam_value(value: str) -> int:
    # The dump carries a signed 32-bit account id
    account_id = int_value(value, 0) & 0xFFFFFFFF
    try:
        return account_id_to_steam64(account_id)
    except InvalidValueError:
        return 0


# Dump attribute -> (DumpPlayer field, value conversion)
_ATTRIBUTES = {
    'm_szName': ('names', str),
    'm_iPing': ('ping', int_value),
    'm_iScore': ('score', int_value),
    'm_iDeaths': ('deaths', int_value),
    'm_bConnected': ('connected', bool_value),
    'm_iTeam': ('team', int_value),
    'm_bAlive': ('alive', bool_value),
    'm_iHealth': ('health', int_value),
    'm_iAccountID': ('steam_id', _steam_value),
    'm_bValid': ('valid', bool_value),
    'm_iUserID': ('user_id', int_value),
}


def parse_dump(text: str, dump: DumpPlayer | None = None) -> DumpPlayer:
    """Parse the full text of one G15 dump.

    Lines that do not follow ``FIELD[INDEX] TYPE (VALUE)`` are skipped,
    indexes outside the slot range are dropped and values failing their
    typed conversion fall back to zero/False. Every accepted line is
    recorded in ``present`` for its slot. The output structure is reset
    before parsing, so it reflects only this dump.

    Args:
        text: Complete dump text.
        dump: Caller-owned output structure; a new one is created if omitted.

    Returns:
        The populated DumpPlayer.
    """
    if dump is None:
        dump = DumpPlayer()
    else:
        dump.reset()

    skipped = 0
    for line in text.split('\n'):
        m = _LINE_RE.match(line.strip('\r'))
        if not m:
            skipped += 1
            continue

        attr, index_text, _kind, value = m.groups()
        index = int_value(index_text, -1)
        if index < 0 or index >= MAX_PLAYERS:
            skipped += 1
            continue
        value = value or ''

        name, convert = _ATTRIBUTES[attr]
        getattr(dump, name)[index] = convert(value)
        dump.present[index].add(name)

    log.debug("G15 dump parsed, %d lines skipped", skipped)
    return dump
