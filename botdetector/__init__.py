"""Core module for bot-detector-core."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import IntEnum
from typing import Optional

# A player is considered gone once no adapter has reported it for this long
DISCONNECT_TIMEOUT = timedelta(seconds=6)
# ... and is removed from the registry entirely after this long
EXPIRE_TIMEOUT = timedelta(seconds=20)

DEFAULT_AVATAR_HASH = 'fef49e7fa7e1997310d705b2a6158ff8dc1cdfeb'
BASE_AVATAR_URL = 'https://steamcdn-a.akamaihd.net/steamcommunity/public/images/avatars'


class BotDetectorError(Exception):
    """Base class for all errors raised by the core."""


class InvalidValueError(BotDetectorError, ValueError):
    """Raised for a zero/invalid SteamID, an empty name or empty mark attributes."""


class AlreadyMarkedError(BotDetectorError):
    """Raised when marking an identity that is already in the local marks list."""


class NotFoundError(BotDetectorError, KeyError):
    """Raised when removing an identity that is not present."""


class Team(IntEnum):
    """In-game team, numbered the way the game networks it."""

    UNASSIGNED = 0
    SPECTATOR = 1
    RED = 2
    BLU = 3


class ProfileVisibility(IntEnum):
    """Effective profile visibility as reported by the Steam web API."""

    PRIVATE = 1
    FRIENDS_ONLY = 2
    PUBLIC = 3


def utcnow() -> datetime:
    """Default clock used by the registry."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class MatchResult:
    """Outcome of evaluating a player against one rule list."""

    list_name: str
    tags: tuple[str, ...]
    matcher_type: str     # 'steam_id' or 'name'
    value: str = ''       # matched identity or pattern


@dataclass(frozen=True)
class UserNameHistory:
    """A distinct name observed for an identity."""

    steam_id: int
    name: str
    first_seen: datetime


@dataclass(frozen=True)
class PlayerUpdate:
    """Sparse player update produced by the normalizer.

    Only fields that are not None are applied to the player.
    """

    steam_id: int
    name: Optional[str] = None
    team: Optional[Team] = None
    connected: Optional[float] = None   # Seconds on the server
    user_id: Optional[int] = None
    kills: Optional[int] = None
    deaths: Optional[int] = None
    ping: Optional[int] = None
    health: Optional[int] = None

    def present(self) -> dict[str, object]:
        """Return the fields carried by this update, SteamID excluded."""
        return {
            key: value for key, value in vars(self).items()
            if key != 'steam_id' and value is not None
        }


@dataclass
class Player:
    """A player observed in the current session."""

    steam_id: int
    name: str = ''
    created_on: datetime = field(default_factory=utcnow)
    updated_on: datetime = field(default_factory=utcnow)
    profile_updated_on: Optional[datetime] = None

    # Persisted, local statistics against this player
    kills_on: int = 0
    deaths_by: int = 0
    rage_quits: int = 0

    notes: str = ''
    whitelisted: bool = False

    # Profile summary
    real_name: str = ''
    name_previous: str = ''
    account_created_on: Optional[datetime] = None
    visibility: ProfileVisibility = ProfileVisibility.PUBLIC
    avatar_hash: str = ''

    # Ban state
    community_banned: bool = False
    number_of_vac_bans: int = 0
    last_vac_ban_on: Optional[datetime] = None
    number_of_game_bans: int = 0
    economy_ban: bool = False

    # Session state, never persisted
    team: Team = Team.UNASSIGNED
    connected: float = 0.0
    user_id: int = 0
    kills: int = 0
    deaths: int = 0
    ping: int = 0
    health: int = 0

    kick_attempt_count: int = 0
    our_friend: bool = False

    # Persisted fields changed since the last successful write
    dirty: bool = False
    matches: list[MatchResult] = field(default_factory=list)

    def is_matched(self) -> bool:
        return len(self.matches) > 0

    def is_disconnected(self, now: datetime, timeout: timedelta = DISCONNECT_TIMEOUT) -> bool:
        return now - self.updated_on > timeout

    def is_expired(self, now: datetime, timeout: timedelta = EXPIRE_TIMEOUT) -> bool:
        return now - self.updated_on > timeout

    def touch(self) -> None:
        self.dirty = True


def avatar_url(avatar_hash: str) -> str:
    """Build the full size avatar URL, falling back to the default avatar."""
    avatar_hash = avatar_hash or DEFAULT_AVATAR_HASH
    return f'{BASE_AVATAR_URL}/{avatar_hash[:2]}/{avatar_hash}_full.jpg'


def new_user_name_history(
    steam_id: int,
    name: str,
    first_seen: Optional[datetime] = None,
) -> UserNameHistory:
    """Create a name history record.

    Raises:
        InvalidValueError: If the name is empty.
    """
    if not name:
        raise InvalidValueError(f"Empty name for {steam_id}")
    return UserNameHistory(
        steam_id=steam_id,
        name=name,
        first_seen=first_seen or utcnow(),
    )
