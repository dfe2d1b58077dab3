"""bdscan: evaluate captured game telemetry against bot/cheater rule lists."""

import argparse
import logging
import sys
from pathlib import Path

from botdetector import BotDetectorError
from botdetector.config import Settings, load_settings
from botdetector.lists import read_rule_list
from botdetector.normalizer import from_dump_text, from_log_line
from botdetector.registry import PlayerRegistry
from botdetector.reporter import print_summary, write_csv_report, write_html_report
from botdetector.rules import RuleEngine
from botdetector.steamid import parse_steam_id
from botdetector.store import MemoryStore


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        description=(
            'Evaluate captured console logs and G15 dumps against rule lists. '
            'Exits with status 1 when a reported player carries a kick tag.'
        ),
        prog='bdscan',
    )
    parser.add_argument(
        '--config', type=Path,
        help='Path to a YAML settings file',
    )
    parser.add_argument(
        '--lists', type=Path, nargs='*', default=[],
        help='Rule list JSON files (in addition to list_paths from the settings)',
    )
    parser.add_argument(
        '--log', type=Path,
        help='Console log capture containing status / tf_lobby_debug output',
    )
    parser.add_argument(
        '--dump', type=Path, nargs='*', default=[],
        help='G15 dump captures, applied in order',
    )
    parser.add_argument(
        '--mark', action='append', default=[], metavar='STEAMID:TAG[,TAG]',
        help='Mark a player in the local list before evaluation',
    )
    parser.add_argument(
        '--whitelist', action='append', default=[], metavar='STEAMID',
        help='Whitelist a player before evaluation',
    )
    parser.add_argument(
        '--output', type=Path,
        help='Path for the CSV report',
    )
    parser.add_argument(
        '--html', action='store_true',
        help='Additionally write an HTML report next to the CSV report',
    )
    parser.add_argument(
        '--summary', action='store_true',
        help='Print a summary to stdout',
    )
    parser.add_argument(
        '--matched-only', action='store_true',
        help='Only report players with at least one match',
    )
    parser.add_argument(
        '--fuzzy-threshold', type=float,
        help='Default threshold for fuzzy name rules (default: 0.92)',
    )
    parser.add_argument(
        '--debug', action='store_true',
        help='Enable debug logging',
    )
    return parser


def _parse_mark(value: str) -> tuple[int, list[str]]:
    # SteamID3 values contain colons themselves, so split at the last one
    steam_id, sep, tags = value.rpartition(':')
    if not sep:
        steam_id, tags = value, ''
    return parse_steam_id(steam_id), [t for t in tags.split(',') if t]


def run(args: argparse.Namespace, settings: Settings) -> PlayerRegistry:
    """Load the lists, replay the captures and return the populated registry."""
    engine = RuleEngine(local_list_name=settings.local_list_name)
    registry = PlayerRegistry(engine, settings, store=MemoryStore())

    list_paths = list(settings.list_paths) + list(args.lists)
    engine.load(read_rule_list(p, settings.fuzzy_threshold) for p in list_paths)

    for value in args.mark:
        steam_id, tags = _parse_mark(value)
        engine.mark(steam_id, tags)
    for value in args.whitelist:
        registry.set_whitelist(parse_steam_id(value), True)

    if args.log:
        with open(args.log, 'r', encoding='utf-8', errors='replace') as f:
            for line in f:
                update = from_log_line(line)
                if update is not None:
                    registry.upsert(update)

    for dump_path in args.dump:
        text = dump_path.read_text(encoding='utf-8', errors='replace')
        for update in from_dump_text(text):
            registry.upsert(update)

    return registry


def main() -> None:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(levelname)s: %(message)s',
    )

    if not args.log and not args.dump:
        parser.error('Either --log or --dump must be given.')

    if args.html and not args.output:
        parser.error('--output is required when using --html.')

    try:
        settings = load_settings(args.config) if args.config else Settings()
        if args.fuzzy_threshold is not None:
            settings.fuzzy_threshold = args.fuzzy_threshold
        registry = run(args, settings)
    except (OSError, ValueError, BotDetectorError) as exc:
        parser.error(str(exc))

    players = registry.all()
    if args.matched_only:
        players = [p for p in players if p.is_matched()]

    title = args.log.name if args.log else args.dump[-1].name

    if args.output:
        write_csv_report(players, args.output)
        if args.html:
            write_html_report(players, args.output.with_suffix('.html'), title, settings.kick_tags)

    if args.summary or not args.output:
        print_summary(players, title)

    flagged = [p for p in players if RuleEngine.matches_kick_tags(p.matches, settings.kick_tags)]
    sys.exit(1 if flagged else 0)


if __name__ == '__main__':
    main()
