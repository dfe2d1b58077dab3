"""Normalizes console log, RCON and G15 telemetry into sparse player updates."""

import logging
import re

from botdetector import InvalidValueError, PlayerUpdate, Team
from botdetector.g15 import MAX_PLAYERS, DumpPlayer, parse_dump
from botdetector.steamid import is_valid, parse_steam_id

log = logging.getLogger(__name__)

# Console log lines are prefixed with "MM/DD/YYYY - HH:MM:SS: "
_TIMESTAMP_RE = re.compile(r'^\d{2}/\d{2}/\d{4} - \d{2}:\d{2}:\d{2}: ')

# Row of the `status` command:
# #    672 "Alice"           [U:1:22202]         01:02:03   57    0 active
_STATUS_RE = re.compile(
    r'^#\s+(\d+)\s+"(.*)"\s+(\[U:\d:\d+\])\s+((?:\d+:)?\d{1,2}:\d{2})\s+(\d+)\s+(\d+)\s+(\w+)'
)

# Member row of `tf_lobby_debug`:
#   Member[3] [U:1:22202]  team = TF_GC_TEAM_INVADERS  type = MATCH_PLAYER
_LOBBY_RE = re.compile(
    r'^\s*(?:Member|Pending)\[\d+\]\s+(\[U:\d:\d+\])\s+team\s*=\s*(TF_GC_TEAM_\w+)'
)

_LOBBY_TEAMS = {
    'TF_GC_TEAM_DEFENDERS': Team.RED,
    'TF_GC_TEAM_INVADERS': Team.BLU,
}


def parse_duration(value: str) -> float:
    """Convert ``MM:SS`` or ``HH:MM:SS`` into seconds.

    Args:
        value: Connected time as printed by ``status``.

    Returns:
        Seconds as float.
    """
    seconds = 0
    for part in value.split(':'):
        seconds = seconds * 60 + int(part)
    return float(seconds)


def _team(value: int) -> Team:
    try:
        return Team(value)
    except ValueError:
        return Team.UNASSIGNED


def _strip_timestamp(line: str) -> str:
    return _TIMESTAMP_RE.sub('', line.rstrip('\r\n'), count=1)


def from_status_line(line: str) -> PlayerUpdate | None:
    """Build an update from one ``status`` row, or None if it is not one."""
    m = _STATUS_RE.match(_strip_timestamp(line))
    if not m:
        return None

    user_id, name, steam3, connected, ping, _loss, _state = m.groups()
    try:
        steam_id = parse_steam_id(steam3)
    except InvalidValueError:
        log.debug("Status row with invalid SteamID dropped: %s", steam3)
        return None

    return PlayerUpdate(
        steam_id=steam_id,
        name=name or None,
        user_id=int(user_id),
        connected=parse_duration(connected),
        ping=int(ping),
    )


def from_lobby_line(line: str) -> PlayerUpdate | None:
    """Build a team update from one ``tf_lobby_debug`` member row."""
    m = _LOBBY_RE.match(_strip_timestamp(line))
    if not m:
        return None

    steam3, team_name = m.groups()
    try:
        steam_id = parse_steam_id(steam3)
    except InvalidValueError:
        log.debug("Lobby row with invalid SteamID dropped: %s", steam3)
        return None

    return PlayerUpdate(steam_id=steam_id, team=_LOBBY_TEAMS.get(team_name, Team.UNASSIGNED))


def from_log_line(line: str) -> PlayerUpdate | None:
    """Normalize one console log line.

    Recognizes ``status`` rows and ``tf_lobby_debug`` member rows; every
    other line yields None.
    """
    return from_status_line(line) or from_lobby_line(line)


def from_status(text: str) -> list[PlayerUpdate]:
    """Normalize a full RCON ``status`` response."""
    return [u for u in map(from_status_line, text.splitlines()) if u is not None]


def from_lobby_debug(text: str) -> list[PlayerUpdate]:
    """Normalize a full RCON ``tf_lobby_debug`` response."""
    return [u for u in map(from_lobby_line, text.splitlines()) if u is not None]


# DumpPlayer field -> PlayerUpdate field
_DUMP_FIELDS = {
    'names': 'name',
    'team': 'team',
    'user_id': 'user_id',
    'score': 'kills',
    'deaths': 'deaths',
    'ping': 'ping',
    'health': 'health',
}


def from_dump(dump: DumpPlayer) -> list[PlayerUpdate]:
    """Convert every slot carrying a valid identity into an update.

    Slots whose account id did not expand to a valid SteamID are dropped.
    Only fields the dump carried a line for are set on the update.
    """
    updates: list[PlayerUpdate] = []
    for i in range(MAX_PLAYERS):
        steam_id = dump.steam_id[i]
        if not is_valid(steam_id):
            continue
        values = {
            key: getattr(dump, attr)[i]
            for attr, key in _DUMP_FIELDS.items() if dump.has(i, attr)
        }
        if 'team' in values:
            values['team'] = _team(values['team'])
        if not values.get('name'):
            values.pop('name', None)
        updates.append(PlayerUpdate(steam_id=steam_id, **values))
    return updates


def from_dump_text(text: str, dump: DumpPlayer | None = None) -> list[PlayerUpdate]:
    """Parse G15 dump text and normalize it in one step."""
    return from_dump(parse_dump(text, dump))
