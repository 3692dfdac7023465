"""
Position estimation.

Players only report their position when it jumps (Seeked) or when asked,
so between confirmations the position is extrapolated from the last
confirmed value, the time elapsed since then and the playback rate.

All times are seconds of a monotonic clock; positions are milliseconds.
"""

from waylrc.mpris.models import PlaybackStatus, Player


def _is_advancing(player: Player) -> bool:
    return player.effective_status is PlaybackStatus.PLAYING


def _clamp(position_ms: float, length_ms: int | None) -> int:
    position = int(round(position_ms))
    if position < 0:
        return 0
    if length_ms is not None and position > length_ms:
        return length_ms
    return position


def estimate(player: Player, now: float) -> int:
    """
    Estimate the playback offset of a player at a monotonic instant.

    Args:
        player: The player, with confirmed position, stamp and rate.
        now: Current monotonic time in seconds.

    Returns:
        Offset in milliseconds, clamped to [0, track length]. Paused,
        stopped and rate-0 players report the confirmed position.

    Example:
        # confirmed 4000 ms, 2 s ago, rate 1.0 -> 6000
        estimate(player, player.confirmed_at + 2.0)
    """
    length_ms = player.track.length_ms if player.track is not None else None

    if not _is_advancing(player):
        return _clamp(player.position_ms, length_ms)

    elapsed = max(0.0, now - player.confirmed_at)
    return _clamp(player.position_ms + elapsed * player.rate * 1000.0, length_ms)


def deadline_for(player: Player, target_ms: int) -> float | None:
    """
    Monotonic instant at which the estimate reaches a target offset.

    Inverse of estimate() along the current playback direction.

    Args:
        player: The player.
        target_ms: Offset to reach, in milliseconds.

    Returns:
        Monotonic time in seconds (possibly in the past), or None when the
        player is not advancing or moves away from the target.
    """
    if not _is_advancing(player):
        return None

    distance = target_ms - player.position_ms
    if distance != 0 and (distance > 0) != (player.rate > 0):
        return None

    return player.confirmed_at + distance / (player.rate * 1000.0)


def is_clamped_at_end(player: Player, now: float) -> bool:
    """True when a playing player's estimate has run into the track length."""
    if not _is_advancing(player) or player.track is None or player.track.length_ms is None:
        return False
    return player.rate > 0 and estimate(player, now) >= player.track.length_ms
