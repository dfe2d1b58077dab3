"""Rule matching engine for identities and player names."""

import logging
import re
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Optional

from botdetector import (
    AlreadyMarkedError,
    InvalidValueError,
    MatchResult,
    NotFoundError,
)
from botdetector.names import name_similarity, strip_invisible
from botdetector.steamid import validate

log = logging.getLogger(__name__)

MATCH_STEAM = 'steam_id'
MATCH_NAME = 'name'

NAME_MODES = ('equal', 'contains', 'starts_with', 'ends_with', 'regex', 'fuzzy')

DEFAULT_LOCAL_LIST = 'local'
DEFAULT_FUZZY_THRESHOLD = 0.92


@dataclass(frozen=True)
class NameRule:
    """A single name pattern with its tags.

    Build instances through :meth:`NameRule.build`, which validates the mode
    and compiles regex patterns up front.
    """

    pattern: str
    mode: str = 'contains'
    tags: tuple[str, ...] = ()
    case_sensitive: bool = False
    threshold: float = DEFAULT_FUZZY_THRESHOLD
    regex: Optional[re.Pattern] = field(default=None, repr=False, compare=False)

    @classmethod
    def build(
        cls,
        pattern: str,
        mode: str = 'contains',
        tags: Iterable[str] = (),
        case_sensitive: bool = False,
        threshold: float = DEFAULT_FUZZY_THRESHOLD,
    ) -> 'NameRule':
        """Validate and compile a name rule.

        Raises:
            InvalidValueError: On an empty or non-string pattern, an unknown
                mode or a bad regex.
        """
        if not isinstance(pattern, str) or not pattern:
            raise InvalidValueError(f"Invalid name pattern: {pattern!r}")
        if mode not in NAME_MODES:
            raise InvalidValueError(f"Unknown name match mode: {mode!r}")

        regex = None
        if mode == 'regex':
            flags = 0 if case_sensitive else re.IGNORECASE
            try:
                regex = re.compile(pattern, flags)
            except re.error as exc:
                raise InvalidValueError(f"Invalid regex {pattern!r}: {exc}") from exc

        return cls(
            pattern=pattern,
            mode=mode,
            tags=tuple(tags),
            case_sensitive=case_sensitive,
            threshold=threshold,
            regex=regex,
        )

    def matches(self, name: str) -> bool:
        if not name:
            return False
        if self.mode == 'regex':
            return self.regex is not None and self.regex.search(name) is not None
        if self.mode == 'fuzzy':
            return name_similarity(name, self.pattern) >= self.threshold

        candidate = strip_invisible(name)
        pattern = self.pattern
        if not self.case_sensitive:
            candidate = candidate.casefold()
            pattern = pattern.casefold()

        if self.mode == 'equal':
            return candidate == pattern
        if self.mode == 'starts_with':
            return candidate.startswith(pattern)
        if self.mode == 'ends_with':
            return candidate.endswith(pattern)
        return pattern in candidate


@dataclass(frozen=True)
class RuleList:
    """A named rule list: identities with tags and name rules.

    ``players`` maps SteamID64 to that entry's own tags; an entry without
    tags (and a name rule without tags) reports the list's ``tags``.
    Instances are treated as immutable; the ``with_*`` helpers return copies.
    """

    name: str
    tags: tuple[str, ...] = ()
    players: Mapping[int, tuple[str, ...]] = field(default_factory=dict)
    name_rules: tuple[NameRule, ...] = ()

    def __len__(self) -> int:
        return len(self.players) + len(self.name_rules)

    def with_player(self, steam_id: int, tags: Iterable[str]) -> 'RuleList':
        players = dict(self.players)
        players[steam_id] = tuple(tags)
        return RuleList(self.name, self.tags, players, self.name_rules)

    def without_player(self, steam_id: int) -> 'RuleList':
        players = {sid: tags for sid, tags in self.players.items() if sid != steam_id}
        return RuleList(self.name, self.tags, players, self.name_rules)


@dataclass(frozen=True)
class _RuleSet:
    """Immutable snapshot of everything the engine matches against."""

    local: RuleList
    lists: tuple[RuleList, ...] = ()
    whitelist: frozenset[int] = frozenset()

    def all_lists(self) -> tuple[RuleList, ...]:
        return (self.local,) + self.lists


class RuleEngine:
    """Evaluates identities and names against the loaded rule lists.

    Reads work on whatever snapshot is current when they start and never
    take a lock. Writers build a new snapshot under a lock and publish it
    with a single reference assignment, then notify subscribers so they can
    recompute player matches.
    """

    def __init__(
        self,
        lists: Iterable[RuleList] = (),
        local_list_name: str = DEFAULT_LOCAL_LIST,
    ) -> None:
        self._write_lock = threading.Lock()
        self._listeners: list[Callable[[], None]] = []
        self._rules = _RuleSet(local=RuleList(local_list_name), lists=tuple(lists))

    def subscribe(self, listener: Callable[[], None]) -> None:
        """Register a callback invoked after every change of the rule set."""
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    # -- reads ---------------------------------------------------------

    @property
    def local_list(self) -> RuleList:
        return self._rules.local

    def lists(self) -> tuple[RuleList, ...]:
        """Loaded lists, local marks list first."""
        return self._rules.all_lists()

    def whitelisted(self, steam_id: int) -> bool:
        return steam_id in self._rules.whitelist

    def match_steam(self, steam_id: int) -> list[MatchResult]:
        """Match an identity against every list; whitelisted ids never match."""
        rules = self._rules
        if steam_id in rules.whitelist:
            return []
        return _match_steam(rules, steam_id)

    def match_name(self, name: str) -> list[MatchResult]:
        """Match a name against every name rule of every list.

        A linear scan over all rules, live player counts are small.
        """
        return _match_name(self._rules, name)

    def match_player(self, steam_id: int, names: Iterable[str]) -> list[MatchResult]:
        """Full evaluation of one player: identity plus every known name.

        Args:
            steam_id: The player's SteamID64.
            names: Current and historical names.

        Returns:
            Ordered, de-duplicated match results; empty when whitelisted.
        """
        rules = self._rules
        if steam_id in rules.whitelist:
            return []

        results = _match_steam(rules, steam_id)
        seen = set(results)
        for name in dict.fromkeys(names):
            for result in _match_name(rules, name):
                if result not in seen:
                    seen.add(result)
                    results.append(result)
        return results

    def unique_tags(self) -> list[str]:
        """Sorted union of every tag across all lists."""
        tags: set[str] = set()
        for rule_list in self._rules.all_lists():
            tags.update(rule_list.tags)
            for entry_tags in rule_list.players.values():
                tags.update(entry_tags)
            for rule in rule_list.name_rules:
                tags.update(rule.tags)
        return sorted(tags)

    @staticmethod
    def matches_kick_tags(results: Iterable[MatchResult], kick_tags: Iterable[str]) -> bool:
        """Check whether any match carries one of the configured kick tags."""
        wanted = set(kick_tags)
        return any(wanted.intersection(result.tags) for result in results)

    # -- writes --------------------------------------------------------

    def load(self, lists: Iterable[RuleList]) -> None:
        """Replace every loaded list wholesale.

        The local marks list and the whitelist are kept.
        """
        new_lists = tuple(lists)
        with self._write_lock:
            current = self._rules
            self._rules = _RuleSet(local=current.local, lists=new_lists, whitelist=current.whitelist)
        log.info("%d rule lists loaded (%d entries)",
                 len(new_lists), sum(len(rl) for rl in new_lists))
        self._notify()

    def mark(self, steam_id: int, attrs: Iterable[str]) -> None:
        """Add an identity to the local marks list.

        Args:
            steam_id: SteamID64 to mark.
            attrs: Tags for the entry, e.g. ``['cheater']``; a single string
                is taken as one tag.

        Raises:
            InvalidValueError: If the SteamID is invalid or attrs is empty.
            AlreadyMarkedError: If the identity is already marked.
        """
        validate(steam_id)
        if isinstance(attrs, str):
            attrs = [attrs]
        tags = tuple(dict.fromkeys(a.strip() for a in attrs if a and a.strip()))
        if not tags:
            raise InvalidValueError("At least one attribute is required")

        with self._write_lock:
            current = self._rules
            if steam_id in current.local.players:
                raise AlreadyMarkedError(f"{steam_id} is already marked")
            self._rules = _RuleSet(
                local=current.local.with_player(steam_id, tags),
                lists=current.lists,
                whitelist=current.whitelist,
            )
        log.info("Marked %d as %s", steam_id, ', '.join(tags))
        self._notify()

    def unmark(self, steam_id: int) -> int:
        """Remove an identity from the local marks list.

        Returns:
            Number of entries remaining in the local marks list.

        Raises:
            NotFoundError: If the identity is not marked.
        """
        with self._write_lock:
            current = self._rules
            if steam_id not in current.local.players:
                raise NotFoundError(f"{steam_id} is not marked")
            local = current.local.without_player(steam_id)
            self._rules = _RuleSet(local=local, lists=current.lists, whitelist=current.whitelist)
        log.info("Unmarked %d, %d entries remaining", steam_id, len(local.players))
        self._notify()
        return len(local.players)

    def add_whitelist(self, steam_id: int) -> None:
        validate(steam_id)
        with self._write_lock:
            current = self._rules
            if steam_id in current.whitelist:
                return
            self._rules = _RuleSet(
                local=current.local,
                lists=current.lists,
                whitelist=current.whitelist | {steam_id},
            )
        log.info("Whitelisted %d", steam_id)
        self._notify()

    def remove_whitelist(self, steam_id: int) -> None:
        """Raises NotFoundError if the identity is not whitelisted."""
        with self._write_lock:
            current = self._rules
            if steam_id not in current.whitelist:
                raise NotFoundError(f"{steam_id} is not whitelisted")
            self._rules = _RuleSet(
                local=current.local,
                lists=current.lists,
                whitelist=current.whitelist - {steam_id},
            )
        log.info("Removed %d from whitelist", steam_id)
        self._notify()


def _match_steam(rules: _RuleSet, steam_id: int) -> list[MatchResult]:
    results: list[MatchResult] = []
    for rule_list in rules.all_lists():
        entry_tags = rule_list.players.get(steam_id)
        if entry_tags is None:
            continue
        results.append(MatchResult(
            list_name=rule_list.name,
            tags=entry_tags or rule_list.tags,
            matcher_type=MATCH_STEAM,
            value=str(steam_id),
        ))
    return results


def _match_name(rules: _RuleSet, name: str) -> list[MatchResult]:
    results: list[MatchResult] = []
    if not name:
        return results
    for rule_list in rules.all_lists():
        for rule in rule_list.name_rules:
            if rule.matches(name):
                results.append(MatchResult(
                    list_name=rule_list.name,
                    tags=rule.tags or rule_list.tags,
                    matcher_type=MATCH_NAME,
                    value=rule.pattern,
                ))
    return results
