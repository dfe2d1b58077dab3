"""Tests for the bdscan command line tool."""

import sys

import pytest

import bdscan
from botdetector import Team

from conftest import ALICE, BOB, OMEGA, SWIFT


def _args(*argv):
    return bdscan.build_parser().parse_args(list(argv))


class TestRun:
    """Tests for replaying captures into a registry."""

    def test_log_and_dump(self, data_dir):
        args = _args(
            '--lists', str(data_dir / 'playerlist.json'), str(data_dir / 'rules.json'),
            '--log', str(data_dir / 'console.log'),
            '--dump', str(data_dir / 'g15_dump.txt'),
        )
        registry = bdscan.run(args, bdscan.Settings())
        players = {p.steam_id: p for p in registry.all()}
        assert list(players) == [ALICE, OMEGA, SWIFT, BOB]

        alice = players[ALICE]
        assert alice.team == Team.RED
        assert alice.connected == 754.0
        assert alice.kills == 12
        assert alice.is_matched() is False

        assert {t for m in players[OMEGA].matches for t in m.tags} == {'cheater'}
        assert players[BOB].matches[0].tags == ('bot',)

    def test_mark_and_whitelist(self, data_dir):
        args = _args(
            '--log', str(data_dir / 'console.log'),
            '--mark', '[U:1:22202]:cheater,test',
            '--whitelist', str(OMEGA),
            '--lists', str(data_dir / 'playerlist.json'),
        )
        registry = bdscan.run(args, bdscan.Settings())
        assert registry.get(ALICE).matches[0].tags == ('cheater', 'test')
        assert registry.get(OMEGA).matches == []
        assert registry.get(OMEGA).whitelisted is True


class TestMain:
    """Tests for the entry point."""

    def test_requires_input(self, monkeypatch):
        monkeypatch.setattr(sys, 'argv', ['bdscan'])
        with pytest.raises(SystemExit) as exc:
            bdscan.main()
        assert exc.value.code == 2

    def test_reports_and_exit_code(self, monkeypatch, tmp_path, data_dir):
        out = tmp_path / 'report.csv'
        monkeypatch.setattr(sys, 'argv', [
            'bdscan',
            '--config', str(data_dir / 'settings.yaml'),
            '--lists', str(data_dir / 'playerlist.json'), str(data_dir / 'rules.json'),
            '--dump', str(data_dir / 'g15_dump.txt'),
            '--output', str(out), '--html',
        ])
        with pytest.raises(SystemExit) as exc:
            bdscan.main()
        assert exc.value.code == 1
        assert out.exists()
        assert out.with_suffix('.html').exists()


class TestParseMark:
    """Tests for the --mark argument format."""

    def test_steam3_with_tags(self):
        assert bdscan._parse_mark('[U:1:22202]:cheater,test') == (ALICE, ['cheater', 'test'])

    def test_steam64_with_tag(self):
        assert bdscan._parse_mark(f'{OMEGA}:bot') == (OMEGA, ['bot'])

    def test_without_tags(self):
        assert bdscan._parse_mark(str(ALICE)) == (ALICE, [])
