# tests/test_position.py
"""Test playback position estimation"""

import pytest

from waylrc.mpris.models import PlaybackStatus
from waylrc.sync.position import deadline_for, estimate, is_clamped_at_end


class TestEstimate:
    """Test extrapolation between confirmations"""

    def test_playing_advances(self, make_player):
        """Test confirmed 4000 ms two seconds ago at rate 1.0"""
        player = make_player(position_ms=4000, confirmed_at=100.0)

        assert estimate(player, 102.0) == 6000

    def test_rate_scales_elapsed_time(self, make_player):
        """Test rate is applied to elapsed real time"""
        player = make_player(position_ms=1000, confirmed_at=100.0, rate=1.5)

        assert estimate(player, 102.0) == 4000

    def test_paused_is_frozen(self, make_player):
        """Test paused players report the same offset however long we wait"""
        player = make_player(status=PlaybackStatus.PAUSED, position_ms=3000, confirmed_at=100.0)

        first = estimate(player, 101.0)
        second = estimate(player, 5000.0)

        assert first == second == 3000

    def test_stopped_is_frozen(self, make_player):
        """Test stopped players do not advance"""
        player = make_player(status=PlaybackStatus.STOPPED, position_ms=500, confirmed_at=100.0)

        assert estimate(player, 200.0) == 500

    def test_zero_rate_counts_as_paused(self, make_player):
        """Test a Playing player at rate 0 does not advance"""
        player = make_player(position_ms=2000, confirmed_at=100.0, rate=0.0)

        assert player.effective_status is PlaybackStatus.PAUSED
        assert estimate(player, 150.0) == 2000

    def test_clamped_to_track_length(self, make_player, make_track):
        """Test the estimate never passes the end of the track"""
        player = make_player(position_ms=9000, confirmed_at=100.0, track=make_track(length_ms=10_000))

        assert estimate(player, 200.0) == 10_000

    def test_negative_clamped_to_zero(self, make_player):
        """Test reverse playback stops at 0"""
        player = make_player(position_ms=1000, confirmed_at=100.0, rate=-1.0)

        assert estimate(player, 105.0) == 0

    def test_unknown_length_not_clamped(self, make_player, make_track):
        """Test no upper clamp without a track length"""
        player = make_player(position_ms=0, confirmed_at=0.0, track=make_track(length_ms=None))

        assert estimate(player, 3600.0) == 3_600_000

    def test_clock_before_confirmation(self, make_player):
        """Test a stale clock reading never moves the estimate backwards"""
        player = make_player(position_ms=4000, confirmed_at=100.0)

        assert estimate(player, 99.0) == 4000


class TestDeadline:
    """Test the inverse of estimate()"""

    def test_deadline_for_next_line(self, make_player):
        """Test reaching 10000 ms from 4000 ms takes six seconds"""
        player = make_player(position_ms=4000, confirmed_at=100.0)

        assert deadline_for(player, 10_000) == pytest.approx(106.0)

    def test_deadline_respects_rate(self, make_player):
        """Test double speed halves the wait"""
        player = make_player(position_ms=0, confirmed_at=100.0, rate=2.0)

        assert deadline_for(player, 10_000) == pytest.approx(105.0)

    def test_no_deadline_when_paused(self, make_player):
        """Test paused players never reach anything"""
        player = make_player(status=PlaybackStatus.PAUSED, position_ms=0)

        assert deadline_for(player, 10_000) is None

    def test_no_deadline_behind_playback(self, make_player):
        """Test targets behind a forward-playing player are never reached"""
        player = make_player(position_ms=5000, confirmed_at=100.0)

        assert deadline_for(player, 1000) is None

    def test_reverse_playback_deadline(self, make_player):
        """Test reverse playback reaches earlier targets"""
        player = make_player(position_ms=5000, confirmed_at=100.0, rate=-1.0)

        assert deadline_for(player, 3000) == pytest.approx(102.0)
        assert deadline_for(player, 8000) is None

    def test_estimate_matches_deadline(self, make_player):
        """Test estimate() at the deadline returns the target"""
        player = make_player(position_ms=1234, confirmed_at=50.0, rate=1.25)

        deadline = deadline_for(player, 7000)

        assert estimate(player, deadline) == 7000


class TestClampedAtEnd:
    """Test end-of-track detection"""

    def test_at_end(self, make_player, make_track):
        """Test a playing player past the length is pinned at the end"""
        player = make_player(position_ms=9500, confirmed_at=100.0, track=make_track(length_ms=10_000))

        assert not is_clamped_at_end(player, 100.1)
        assert is_clamped_at_end(player, 101.0)

    def test_paused_is_never_at_end(self, make_player, make_track):
        """Test paused players are not reported as clamped"""
        player = make_player(
            status=PlaybackStatus.PAUSED,
            position_ms=10_000,
            track=make_track(length_ms=10_000),
        )

        assert not is_clamped_at_end(player, 2000.0)
