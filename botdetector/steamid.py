"""SteamID conversions between account id, SteamID3 and SteamID64."""

import re

from botdetector import InvalidValueError

# SteamID64 of account id 0 in the public universe, individual account type
STEAM64_BASE = 76561197960265728
ACCOUNT_ID_MAX = 0xFFFFFFFF

_STEAM3_RE = re.compile(r'^\[U:1:(\d+)\]$', re.ASCII)
_DIGITS_RE = re.compile(r'^\d+$', re.ASCII)


def is_valid(steam_id: int) -> bool:
    """Check that a SteamID64 lies in the individual account range."""
    return (
        isinstance(steam_id, int)
        and not isinstance(steam_id, bool)
        and STEAM64_BASE < steam_id <= STEAM64_BASE + ACCOUNT_ID_MAX
    )


def validate(steam_id: int) -> int:
    """Return the SteamID64 unchanged, or raise InvalidValueError."""
    if not is_valid(steam_id):
        raise InvalidValueError(f"Invalid SteamID: {steam_id!r}")
    return steam_id


def account_id_to_steam64(account_id: int) -> int:
    """Expand a 32-bit account id to the full SteamID64.

    Raises:
        InvalidValueError: If the account id is zero or out of range.
    """
    if account_id <= 0 or account_id > ACCOUNT_ID_MAX:
        raise InvalidValueError(f"Invalid account id: {account_id}")
    return STEAM64_BASE + account_id


def steam64_to_account_id(steam_id: int) -> int:
    return validate(steam_id) - STEAM64_BASE


def to_steam3(steam_id: int) -> str:
    """Format a SteamID64 as SteamID3, e.g. ``[U:1:22202]``."""
    return f'[U:1:{steam64_to_account_id(steam_id)}]'


def parse_steam_id(value: int | str) -> int:
    """Parse a SteamID64, SteamID3 or bare account id into a SteamID64.

    Args:
        value: Integer or string representation.

    Returns:
        The SteamID64.

    Raises:
        InvalidValueError: If the value does not describe a valid identity.
    """
    if isinstance(value, str):
        text = value.strip()
        m = _STEAM3_RE.match(text)
        if m:
            return account_id_to_steam64(int(m.group(1)))
        if not _DIGITS_RE.match(text):
            raise InvalidValueError(f"Invalid SteamID: {value!r}")
        value = int(text)
    elif not isinstance(value, int) or isinstance(value, bool):
        raise InvalidValueError(f"Invalid SteamID: {value!r}")

    if is_valid(value):
        return value
    if 0 < value <= ACCOUNT_ID_MAX:
        return account_id_to_steam64(value)
    raise InvalidValueError(f"Invalid SteamID: {value!r}")
