"""Report generation for player match evidence (CSV, HTML, summary)."""

import csv
import logging
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from botdetector import Player
from botdetector.rules import MATCH_NAME, MATCH_STEAM
from botdetector.steamid import to_steam3

log = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / 'templates'

CSV_COLUMNS = [
    'SteamID',
    'SteamID3',
    'Name',
    'Team',
    'UserID',
    'Connected',
    'Ping',
    'Kills',
    'Deaths',
    'Whitelisted',
    'Lists',
    'Tags',
    'Matched_By',
]


def _player_to_row(player: Player) -> dict:
    """Convert a Player to a flat dict for CSV/HTML output."""
    lists = list(dict.fromkeys(m.list_name for m in player.matches))
    tags = list(dict.fromkeys(t for m in player.matches for t in m.tags))
    matched_by = list(dict.fromkeys(m.matcher_type for m in player.matches))
    return {
        'SteamID': str(player.steam_id),
        'SteamID3': to_steam3(player.steam_id),
        'Name': player.name,
        'Team': player.team.name,
        'UserID': str(player.user_id),
        'Connected': f'{player.connected:.0f}',
        'Ping': str(player.ping),
        'Kills': str(player.kills),
        'Deaths': str(player.deaths),
        'Whitelisted': 'yes' if player.whitelisted else '',
        'Lists': ', '.join(lists),
        'Tags': ', '.join(tags),
        'Matched_By': ', '.join(matched_by),
        # Set of tags for targeted row highlighting in HTML
        '_tags': set(tags),
    }


def write_csv_report(players: list[Player], output_path: Path) -> None:
    """Write players and their matches as a CSV report.

    Uses UTF-8 with BOM (utf-8-sig) and semicolon delimiter, which both
    spreadsheet applications and the CSV module read back unchanged.

    Args:
        players: Player snapshots.
        output_path: Path for the output CSV file.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', newline='', encoding='utf-8-sig') as f:
        writer = csv.DictWriter(
            f, fieldnames=CSV_COLUMNS, delimiter=';', extrasaction='ignore',
        )
        writer.writeheader()
        for player in players:
            writer.writerow(_player_to_row(player))

    log.info("CSV report written: %s (%d rows)", output_path, len(players))


def write_html_report(
    players: list[Player],
    output_path: Path,
    title: str = '',
    kick_tags: list[str] | None = None,
) -> None:
    """Write players and their matches as an HTML report using Jinja2.

    Args:
        players: Player snapshots.
        output_path: Path for the output HTML file.
        title: Report title, usually the capture name.
        kick_tags: Tags highlighted as actionable.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=True,
    )
    template = env.get_template('report.html')

    rows = [_player_to_row(p) for p in players]
    stats = compute_stats(players)

    html = template.render(
        title=title,
        rows=rows,
        stats=stats,
        columns=CSV_COLUMNS,
        kick_tags=set(kick_tags or ()),
    )

    output_path.write_text(html, encoding='utf-8')
    log.info("HTML report written: %s", output_path)


def compute_stats(players: list[Player]) -> dict:
    """Compute summary statistics over player snapshots."""
    matched = [p for p in players if p.is_matched()]

    tag_counts: dict[str, int] = {}
    for p in matched:
        for tag in dict.fromkeys(t for m in p.matches for t in m.tags):
            tag_counts[tag] = tag_counts.get(tag, 0) + 1

    return {
        'total': len(players),
        'matched': len(matched),
        'whitelisted': sum(1 for p in players if p.whitelisted),
        'steam_matches': sum(
            1 for p in matched if any(m.matcher_type == MATCH_STEAM for m in p.matches)
        ),
        'name_matches': sum(
            1 for p in matched if any(m.matcher_type == MATCH_NAME for m in p.matches)
        ),
        'tags': dict(sorted(tag_counts.items())),
    }


def print_summary(players: list[Player], title: str = '') -> None:
    """Print a summary of the players and their matches to stdout.

    Args:
        players: Player snapshots.
        title: Capture name.
    """
    stats = compute_stats(players)

    print(f"\n=== Player report: {title} ===")
    print(f"Players:                   {stats['total']:>5}")
    print(f"Matched:                   {stats['matched']:>5}")
    print(f"  - by SteamID:            {stats['steam_matches']:>5}")
    print(f"  - by name:               {stats['name_matches']:>5}")
    print(f"Whitelisted:               {stats['whitelisted']:>5}")
    if stats['tags']:
        print("---")
        for tag, count in stats['tags'].items():
            print(f"  {tag:<24}{count:>5}")
    for p in players:
        if p.is_matched():
            tags = ', '.join(dict.fromkeys(t for m in p.matches for t in m.tags))
            print(f"  {p.steam_id}  {p.name}  [{tags}]")
    print()
