"""Tests for botdetector.reporter module."""

import csv

from botdetector import MatchResult, Player, Team
from botdetector.reporter import (
    CSV_COLUMNS,
    compute_stats,
    print_summary,
    write_csv_report,
    write_html_report,
)
from botdetector.rules import MATCH_NAME, MATCH_STEAM

from conftest import ALICE, OMEGA


def _player(**kwargs) -> Player:
    """Create a Player with defaults."""
    defaults = dict(steam_id=ALICE, name='Alice', team=Team.RED, ping=45)
    defaults.update(kwargs)
    return Player(**defaults)


def _flagged() -> Player:
    return _player(
        steam_id=OMEGA,
        name='OMEGATRONIC',
        team=Team.BLU,
        matches=[
            MatchResult('Community playerlist', ('cheater',), MATCH_STEAM, str(OMEGA)),
            MatchResult('Community rules', ('cheater', 'bot'), MATCH_NAME, 'omegatronic'),
        ],
    )


class TestComputeStats:
    """Tests for summary statistics."""

    def test_counts(self):
        stats = compute_stats([_player(), _flagged(), _player(whitelisted=True)])
        assert stats['total'] == 3
        assert stats['matched'] == 1
        assert stats['whitelisted'] == 1
        assert stats['steam_matches'] == 1
        assert stats['name_matches'] == 1

    def test_tags_counted_once_per_player(self):
        assert compute_stats([_flagged()])['tags'] == {'bot': 1, 'cheater': 1}


class TestCsvReport:
    """Tests for the CSV report."""

    def test_rows(self, tmp_path):
        out = tmp_path / 'report.csv'
        write_csv_report([_player(), _flagged()], out)
        with open(out, newline='', encoding='utf-8-sig') as f:
            rows = list(csv.DictReader(f, delimiter=';'))
        assert list(rows[0].keys()) == CSV_COLUMNS
        assert rows[0]['SteamID3'] == '[U:1:22202]'
        assert rows[0]['Tags'] == ''
        assert rows[1]['Lists'] == 'Community playerlist, Community rules'
        assert rows[1]['Tags'] == 'cheater, bot'
        assert rows[1]['Matched_By'] == 'steam_id, name'
        assert rows[1]['Team'] == 'BLU'

    def test_creates_parent_dir(self, tmp_path):
        out = tmp_path / 'sub' / 'report.csv'
        write_csv_report([], out)
        assert out.exists()


class TestHtmlReport:
    """Tests for the HTML report."""

    def test_render(self, tmp_path):
        out = tmp_path / 'report.html'
        write_html_report([_player(), _flagged()], out, 'console.log', ['cheater'])
        html = out.read_text(encoding='utf-8')
        assert 'Player report: console.log' in html
        assert 'OMEGATRONIC' in html
        assert 'class="kick"' in html

    def test_escapes_names(self, tmp_path):
        out = tmp_path / 'report.html'
        write_html_report([_player(name='<script>')], out)
        assert '<script>' not in out.read_text(encoding='utf-8')


class TestPrintSummary:
    """Tests for the stdout summary."""

    def test_output(self, capsys):
        print_summary([_player(), _flagged()], 'capture')
        out = capsys.readouterr().out
        assert 'Player report: capture' in out
        assert 'OMEGATRONIC' in out
        assert 'cheater' in out
