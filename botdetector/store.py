"""Persistence collaborator interface and an in-memory implementation."""

import logging
from typing import Protocol

from botdetector import Player, UserNameHistory

log = logging.getLogger(__name__)


class PlayerStore(Protocol):
    """Typed bulk operations the registry hands persisted state to."""

    def save_players(self, players: list[Player]) -> None:
        ...

    def save_user_names(self, names: list[UserNameHistory]) -> None:
        ...

    def drop_players(self, players: list[Player]) -> None:
        ...


class MemoryStore:
    """PlayerStore keeping everything in process memory."""

    def __init__(self) -> None:
        self.players: dict[int, Player] = {}
        self.user_names: list[UserNameHistory] = []
        self.dropped: list[int] = []

    def save_players(self, players: list[Player]) -> None:
        for player in players:
            self.players[player.steam_id] = player
        log.debug("%d players saved", len(players))

    def save_user_names(self, names: list[UserNameHistory]) -> None:
        self.user_names.extend(names)

    def drop_players(self, players: list[Player]) -> None:
        self.dropped.extend(p.steam_id for p in players)
