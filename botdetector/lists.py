"""Conversion of parsed rule-list documents into RuleList objects."""

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

from botdetector import InvalidValueError
from botdetector.rules import DEFAULT_FUZZY_THRESHOLD, NameRule, RuleList
from botdetector.steamid import parse_steam_id

log = logging.getLogger(__name__)


def _tags(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(dict.fromkeys(str(v).strip() for v in value if str(v).strip()))


def _add_player(players: dict, list_name: str, steam_id: Any, tags: tuple[str, ...]) -> None:
    try:
        sid = parse_steam_id(steam_id)
    except InvalidValueError as exc:
        log.warning("List %s: entry %r skipped: %s", list_name, steam_id, exc)
        return
    players[sid] = tuple(dict.fromkeys(players.get(sid, ()) + tags))


def _add_rule(
    rules: list,
    list_name: str,
    pattern: Any,
    mode: Any,
    tags: tuple[str, ...],
    case_sensitive: bool,
    threshold: Any,
) -> None:
    try:
        rules.append(NameRule.build(
            pattern, mode=mode, tags=tags,
            case_sensitive=case_sensitive, threshold=float(threshold),
        ))
    except (InvalidValueError, TypeError, ValueError) as exc:
        log.warning("List %s: name rule %r skipped: %s", list_name, pattern, exc)


def _mapping(value: Any) -> Mapping:
    return value if isinstance(value, Mapping) else {}


def _items(value: Any, list_name: str, key: str) -> list:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        log.warning("List %s: %s is not a list, ignored", list_name, key)
        return []
    return list(value)


def _from_tf2bd(
    doc: Mapping,
    name: str,
    fuzzy_threshold: float,
) -> RuleList:
    """Convert a TF2 Bot Detector style playerlist/rules document."""
    players: dict[int, tuple[str, ...]] = {}
    for entry in _items(doc.get('players'), name, 'players'):
        if not isinstance(entry, Mapping):
            log.warning("List %s: player entry %r skipped", name, entry)
            continue
        _add_player(players, name, entry.get('steamid'), _tags(entry.get('attributes')))

    rules: list[NameRule] = []
    for entry in _items(doc.get('rules'), name, 'rules'):
        if not isinstance(entry, Mapping):
            log.warning("List %s: rule %r skipped", name, entry)
            continue
        tags = _tags(_mapping(entry.get('actions')).get('mark'))
        match = _mapping(entry.get('triggers')).get('username_text_match')
        if match is None:
            continue
        if not isinstance(match, Mapping):
            log.warning("List %s: name trigger %r skipped", name, match)
            continue
        patterns = match.get('patterns')
        if isinstance(patterns, str):
            patterns = [patterns]
        for pattern in _items(patterns, name, 'patterns'):
            _add_rule(
                rules, name, pattern,
                mode=match.get('mode', 'contains'),
                tags=tags,
                case_sensitive=bool(match.get('case_sensitive', False)),
                threshold=match.get('threshold', fuzzy_threshold),
            )

    return RuleList(name=name, players=players, name_rules=tuple(rules))


def _from_entries(
    doc: Mapping,
    name: str,
    fuzzy_threshold: float,
) -> RuleList:
    """Convert a plain ``{name, entries, tags}`` document."""
    list_tags = _tags(doc.get('tags'))
    players: dict[int, tuple[str, ...]] = {}
    rules: list[NameRule] = []

    for entry in _items(doc.get('entries'), name, 'entries'):
        if isinstance(entry, Mapping) and 'pattern' in entry:
            _add_rule(
                rules, name, entry['pattern'],
                mode=entry.get('mode', 'contains'),
                tags=_tags(entry.get('tags')),
                case_sensitive=bool(entry.get('case_sensitive', False)),
                threshold=entry.get('threshold', fuzzy_threshold),
            )
        elif isinstance(entry, Mapping):
            _add_player(players, name, entry.get('steam_id'), _tags(entry.get('tags')))
        else:
            _add_player(players, name, entry, ())

    return RuleList(name=name, tags=list_tags, players=players, name_rules=tuple(rules))


def rule_list_from_document(
    doc: Mapping,
    name: Optional[str] = None,
    fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD,
) -> RuleList:
    """Build a RuleList from an already parsed document.

    Two shapes are accepted: TF2 Bot Detector playerlist/rules documents
    (``file_info``, ``players``, ``rules``) and plain ``{name, entries, tags}``
    documents whose entries are SteamIDs or ``{pattern, mode}`` mappings.
    Malformed entries are skipped with a warning so one bad entry never
    discards the rest of the list.

    Args:
        doc: Parsed document.
        name: List name; defaults to the document's title or name.
        fuzzy_threshold: Threshold for fuzzy rules that do not set one.

    Returns:
        The RuleList.

    Raises:
        InvalidValueError: If the document is not a mapping or has no name.
    """
    if not isinstance(doc, Mapping):
        raise InvalidValueError("Rule list document must be a mapping")

    if 'entries' in doc:
        name = name or doc.get('name')
        if not name:
            raise InvalidValueError("Rule list document has no name")
        rule_list = _from_entries(doc, name, fuzzy_threshold)
    else:
        name = name or _mapping(doc.get('file_info')).get('title')
        if not name:
            raise InvalidValueError("Rule list document has no title")
        rule_list = _from_tf2bd(doc, name, fuzzy_threshold)

    log.info(
        "List %s: %d players, %d name rules",
        rule_list.name, len(rule_list.players), len(rule_list.name_rules),
    )
    return rule_list


def read_rule_list(
    path: str | Path,
    fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD,
) -> RuleList:
    """Read a JSON rule list file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not valid JSON or not a rule list.
    """
    path = Path(path)
    with open(path, 'r', encoding='utf-8-sig') as f:
        doc = json.load(f)
    name = None
    if isinstance(doc, Mapping) and not (doc.get('name') or _mapping(doc.get('file_info')).get('title')):
        name = path.stem
    return rule_list_from_document(doc, name=name, fuzzy_threshold=fuzzy_threshold)
