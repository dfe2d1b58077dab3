"""Registry of live players keyed by SteamID64."""

import logging
import threading
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from enum import Enum
from typing import Optional

from botdetector import (
    MatchResult,
    Player,
    PlayerUpdate,
    UserNameHistory,
    new_user_name_history,
    utcnow,
)
from botdetector.config import Settings
from botdetector.rules import RuleEngine
from botdetector.steamid import validate
from botdetector.store import PlayerStore

log = logging.getLogger(__name__)


class PlayerState(Enum):
    CONNECTED = 'connected'
    DISCONNECTED = 'disconnected'
    EXPIRED = 'expired'


def _snapshot(player: Player) -> Player:
    return replace(player, matches=list(player.matches))


class PlayerRegistry:
    """Keyed store of the players seen in the current session.

    Every mutation happens under a single lock held only for the duration
    of one merge; callers always receive copies, so they never observe a
    partially merged player. When a rule engine is supplied, each player's
    matches are recomputed on every upsert and whenever the engine's rule
    set changes.
    """

    def __init__(
        self,
        engine: Optional[RuleEngine] = None,
        settings: Optional[Settings] = None,
        store: Optional[PlayerStore] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._lock = threading.Lock()
        self._players: dict[int, Player] = {}
        self._names: dict[int, list[UserNameHistory]] = {}
        self._pending_names: list[UserNameHistory] = []
        # Evicted players the store has not accepted yet
        self._pending_drops: list[Player] = []
        # Bumped on every persisted change so a flush never clears newer changes
        self._revisions: dict[int, int] = {}
        self._engine = engine
        self._settings = settings or Settings()
        self._store = store
        self._clock = clock
        if engine is not None:
            engine.subscribe(self.rematch_all)

    def __len__(self) -> int:
        with self._lock:
            return len(self._players)

    def __contains__(self, steam_id: int) -> bool:
        with self._lock:
            return steam_id in self._players

    # -- reads ---------------------------------------------------------

    def all(self) -> list[Player]:
        """Snapshot of every known player in insertion order."""
        with self._lock:
            return [_snapshot(p) for p in self._players.values()]

    def active(self) -> list[Player]:
        """Players updated within the disconnect timeout."""
        with self._lock:
            now = self._clock()
            timeout = self._settings.disconnect_after
            return [
                _snapshot(p) for p in self._players.values()
                if not p.is_disconnected(now, timeout)
            ]

    def get(self, steam_id: int) -> Optional[Player]:
        with self._lock:
            player = self._players.get(steam_id)
            return _snapshot(player) if player else None

    def state(self, steam_id: int) -> PlayerState:
        """Lifecycle state derived from the time since the last update.

        Unknown identities are reported as expired.
        """
        with self._lock:
            player = self._players.get(steam_id)
            if player is None:
                return PlayerState.EXPIRED
            now = self._clock()
            if player.is_expired(now, self._settings.expire_after):
                return PlayerState.EXPIRED
            if player.is_disconnected(now, self._settings.disconnect_after):
                return PlayerState.DISCONNECTED
            return PlayerState.CONNECTED

    def names(self, steam_id: int) -> list[UserNameHistory]:
        """Every distinct name observed for an identity, oldest first."""
        with self._lock:
            return list(self._names.get(steam_id, ()))

    def dirty(self) -> list[Player]:
        """Players with persisted fields changed since the last write."""
        with self._lock:
            return [_snapshot(p) for p in self._players.values() if p.dirty]

    # -- writes --------------------------------------------------------

    def upsert(self, update: PlayerUpdate) -> Player:
        """Merge a sparse update into the player, creating it when unseen.

        Fields carried by the update overwrite the player's, absent fields
        are left untouched.

        Args:
            update: Normalized update; its SteamID must be valid.

        Returns:
            Snapshot of the merged player.

        Raises:
            InvalidValueError: If the SteamID is zero or invalid.
        """
        validate(update.steam_id)
        with self._lock:
            now = self._clock()
            player = self._players.get(update.steam_id)
            if player is None:
                player = self._create(update.steam_id, now)

            changed = False
            for key, value in update.present().items():
                if key == 'name':
                    changed = self._rename(player, value, now) or changed
                else:
                    setattr(player, key, value)

            if now > player.updated_on:
                player.updated_on = now
            if changed:
                self._touch(player)
            player.matches = self._evaluate(player)
            return _snapshot(player)

    def get_or_create(self, steam_id: int) -> Player:
        """Return the player, creating an empty one if it is unknown.

        Raises:
            InvalidValueError: If the SteamID is zero or invalid.
        """
        validate(steam_id)
        with self._lock:
            player = self._players.get(steam_id)
            if player is None:
                player = self._create(steam_id, self._clock())
                player.matches = self._evaluate(player)
            return _snapshot(player)

    def set_notes(self, steam_id: int, notes: str) -> Player:
        validate(steam_id)
        with self._lock:
            player = self._players.get(steam_id) or self._create(steam_id, self._clock())
            if player.notes != notes:
                player.notes = notes
                self._touch(player)
            player.matches = self._evaluate(player)
            return _snapshot(player)

    def set_whitelist(self, steam_id: int, enabled: bool) -> Player:
        """Set the player's whitelist flag and mirror it into the rule engine."""
        validate(steam_id)
        with self._lock:
            player = self._players.get(steam_id) or self._create(steam_id, self._clock())
            if player.whitelisted != enabled:
                player.whitelisted = enabled
                self._touch(player)
            player.matches = self._evaluate(player)

        if self._engine is not None:
            if enabled:
                self._engine.add_whitelist(steam_id)
            elif self._engine.whitelisted(steam_id):
                self._engine.remove_whitelist(steam_id)

        return self.get_or_create(steam_id)

    def rematch_all(self) -> None:
        """Recompute the matches of every known player from scratch."""
        with self._lock:
            for player in self._players.values():
                player.matches = self._evaluate(player)

    def evict(self) -> list[Player]:
        """Remove every player idle for longer than the expire timeout.

        The removed players are handed to the store's ``drop_players``. A
        batch the store rejects is retried with the next call.

        Returns:
            Snapshots of the removed players.
        """
        with self._lock:
            now = self._clock()
            timeout = self._settings.expire_after
            expired = [p for p in self._players.values() if p.is_expired(now, timeout)]
            for player in expired:
                del self._players[player.steam_id]
                self._names.pop(player.steam_id, None)
                self._revisions.pop(player.steam_id, None)
            drops: list[Player] = []
            if self._store is not None:
                drops, self._pending_drops = self._pending_drops + expired, []

        if expired:
            log.info("%d expired players evicted", len(expired))
        if drops:
            try:
                self._store.drop_players(drops)
            except Exception:
                with self._lock:
                    self._pending_drops = drops + self._pending_drops
                raise
        return expired

    def flush(self, store: Optional[PlayerStore] = None) -> int:
        """Write dirty players and new name records, then clear Dirty.

        Dirty is only cleared for players that did not change again while
        the write was in progress.

        Args:
            store: Target store; defaults to the registry's own.

        Returns:
            Number of players written.
        """
        store = store or self._store
        if store is None:
            raise ValueError("No store configured")

        with self._lock:
            players = [_snapshot(p) for p in self._players.values() if p.dirty]
            revisions = {p.steam_id: self._revisions.get(p.steam_id, 0) for p in players}
            names, self._pending_names = self._pending_names, []

        try:
            if players:
                store.save_players(players)
            if names:
                store.save_user_names(names)
        except Exception:
            with self._lock:
                self._pending_names = names + self._pending_names
            raise

        self.mark_clean(players, revisions)
        return len(players)

    def mark_clean(
        self,
        players: list[Player],
        revisions: Optional[dict[int, int]] = None,
    ) -> None:
        """Clear Dirty after a successful write of ``players``."""
        with self._lock:
            for written in players:
                player = self._players.get(written.steam_id)
                if player is None:
                    continue
                if revisions is not None:
                    if self._revisions.get(player.steam_id, 0) != revisions.get(player.steam_id):
                        continue
                player.dirty = False

    # -- internals, called with the lock held ---------------------------

    def _create(self, steam_id: int, now: datetime) -> Player:
        player = Player(steam_id=steam_id, created_on=now, updated_on=now)
        self._players[steam_id] = player
        self._touch(player)
        log.debug("New player %d", steam_id)
        return player

    def _touch(self, player: Player) -> None:
        player.touch()
        self._revisions[player.steam_id] = self._revisions.get(player.steam_id, 0) + 1

    def _rename(self, player: Player, name: str, now: datetime) -> bool:
        if not name or name == player.name:
            return False
        if player.name:
            player.name_previous = player.name

        player.name = name
        history = self._names.setdefault(player.steam_id, [])
        if all(h.name != name for h in history):
            record = new_user_name_history(player.steam_id, name, now)
            history.append(record)
            self._pending_names.append(record)
        return True

    def _evaluate(self, player: Player) -> list[MatchResult]:
        if self._engine is None or player.whitelisted:
            return []
        names = [player.name] + [h.name for h in self._names.get(player.steam_id, ())]
        return self._engine.match_player(player.steam_id, [n for n in names if n])


class EvictionTimer:
    """Calls ``registry.evict()`` at a fixed interval on a daemon thread."""

    def __init__(self, registry: PlayerRegistry, interval: float = 1.0) -> None:
        self._registry = registry
        self._interval = interval
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, name='evict', daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stopped.set()
        if self._thread.is_alive():
            self._thread.join()

    def _run(self) -> None:
        while not self._stopped.wait(self._interval):
            try:
                self._registry.evict()
            except Exception:
                log.exception("Eviction sweep failed")
