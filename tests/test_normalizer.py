"""Tests for botdetector.normalizer module."""

from botdetector import PlayerUpdate, Team
from botdetector.g15 import parse_dump
from botdetector.normalizer import (
    from_dump,
    from_dump_text,
    from_lobby_debug,
    from_log_line,
    from_status,
    parse_duration,
)

from conftest import ALICE, BOB, OMEGA, SWIFT


class TestParseDuration:
    """Tests for status connected-time parsing."""

    def test_minutes_seconds(self):
        assert parse_duration('12:34') == 754.0

    def test_hours(self):
        assert parse_duration('01:02:03') == 3723.0


class TestFromLogLine:
    """Tests for console log line normalization."""

    def test_status_row(self):
        line = '10/19/2026 - 21:18:05: #    101 "Alice"   [U:1:22202]   12:34   45    0 active'
        update = from_log_line(line)
        assert update == PlayerUpdate(
            steam_id=ALICE, name='Alice', user_id=101, connected=754.0, ping=45,
        )

    def test_status_row_without_timestamp(self):
        update = from_log_line('#    102 "OMEGATRONIC"  [U:1:1234567]  01:02:03  5  0 active')
        assert update.steam_id == OMEGA
        assert update.connected == 3723.0

    def test_status_row_sparse(self):
        update = from_log_line('#    101 "Alice"   [U:1:22202]   12:34   45    0 active')
        assert set(update.present()) == {'name', 'user_id', 'connected', 'ping'}

    def test_lobby_row(self):
        update = from_log_line('  Member[1] [U:1:1234567]  team = TF_GC_TEAM_INVADERS  type = MATCH_PLAYER')
        assert update == PlayerUpdate(steam_id=OMEGA, team=Team.BLU)

    def test_lobby_defenders_are_red(self):
        update = from_log_line('  Member[0] [U:1:22202]  team = TF_GC_TEAM_DEFENDERS  type = MATCH_PLAYER')
        assert update.team == Team.RED

    def test_invalid_identity_discarded(self):
        assert from_log_line('#    105 "Broken"  [U:1:0]  00:15  60  0 active') is None

    def test_unrelated_line(self):
        assert from_log_line('10/19/2026 - 21:18:07: Alice killed OMEGATRONIC with scattergun.') is None

    def test_status_header_ignored(self):
        assert from_log_line('# userid name uniqueid connected ping loss state') is None


class TestFromCapture:
    """Tests for multi-line RCON responses."""

    def test_status_response(self, console_log):
        updates = from_status(console_log)
        assert [u.steam_id for u in updates] == [ALICE, OMEGA, SWIFT]

    def test_lobby_response(self, console_log):
        updates = from_lobby_debug(console_log)
        assert [(u.steam_id, u.team) for u in updates] == [(ALICE, Team.RED), (OMEGA, Team.BLU)]


class TestFromDump:
    """Tests for G15 dump normalization."""

    def test_only_valid_identities(self, dump_text):
        updates = from_dump(parse_dump(dump_text))
        assert [u.steam_id for u in updates] == [ALICE, OMEGA, BOB]

    def test_slot_fields_carried(self, dump_text):
        alice = from_dump_text(dump_text)[0]
        assert alice.name == 'Alice'
        assert alice.team == Team.RED
        assert alice.kills == 12
        assert alice.deaths == 4
        assert alice.ping == 45
        assert alice.health == 125
        assert alice.user_id == 101

    def test_unknown_team_unassigned(self):
        updates = from_dump_text('m_iAccountID[1] integer (22202)\nm_iTeam[1] integer (7)')
        assert updates[0].team == Team.UNASSIGNED

    def test_empty_name_not_carried(self):
        updates = from_dump_text('m_iAccountID[1] integer (22202)')
        assert updates[0].name is None

    def test_missing_lines_not_carried(self):
        update = from_dump_text('m_iAccountID[1] integer (22202)\nm_iPing[1] integer (45)')[0]
        assert set(update.present()) == {'ping'}

    def test_bad_value_still_carried(self, dump_text):
        omega = from_dump_text(dump_text)[1]
        assert omega.health == 0

    def test_sample_slot_without_score(self, dump_text):
        bob = from_dump_text(dump_text)[2]
        assert bob.kills is None
        assert bob.health is None
        assert bob.ping == 80

    def test_failed_expansion_dropped(self):
        assert from_dump_text('m_iAccountID[1] integer (abc)\nm_szName[1] string (x)') == []
