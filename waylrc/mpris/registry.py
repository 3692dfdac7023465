"""
Player registry.

Authoritative in-memory view of every MPRIS player that passes the
allow-list. The registry is mutated only through apply(), which the daemon
calls from its single evaluation loop; nothing else writes to a Player.

Lifecycle per player:
    (absent) --appeared--> DISCOVERING --probed--> ACTIVE --vanished--> GONE
    ACTIVE players move freely between Playing, Paused and Stopped.
    GONE entries are removed immediately.

Usage:
    registry = PlayerRegistry(config.players)
    registry.apply(PlayerAppeared("org.mpris.MediaPlayer2.mpv"))
    registry.apply(PlayerProbed(snapshot))
    for player in registry.active_players():
        ...
"""

import itertools
import time
from collections.abc import Callable
from typing import Any

from waylrc.core.config import PlayerConfig
from waylrc.core.logger import get_logger
from waylrc.mpris.events import (
    PlayerAppeared,
    PlayerProbed,
    PlayerVanished,
    PropertiesChanged,
    ResyncCompleted,
    Seeked,
)
from waylrc.mpris.models import (
    PlaybackStatus,
    Player,
    PlayerLifecycle,
    PlayerSnapshot,
    Track,
)
from waylrc.sync.position import estimate


logger = get_logger(__name__)


class PlayerRegistry:
    """
    Registry of MPRIS players keyed by well-known bus name.

    Attributes:
        player_config: Allow-list configuration.
        clock: Monotonic clock returning seconds.

    Example:
        registry = PlayerRegistry(PlayerConfig(allowed=()), clock=loop.time)
        registry.apply(event)
        player = registry.get("org.mpris.MediaPlayer2.spotify")
    """

    def __init__(
        self,
        player_config: PlayerConfig,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.player_config = player_config
        self.clock = clock
        self._players: dict[str, Player] = {}
        self._sequence = itertools.count(1)

    def __contains__(self, name: str) -> bool:
        return name in self._players

    def __len__(self) -> int:
        return len(self._players)

    def get(self, name: str) -> Player | None:
        return self._players.get(name)

    def players(self) -> list[Player]:
        """All registered players, including ones still being discovered."""
        return list(self._players.values())

    def active_players(self) -> list[Player]:
        return [p for p in self._players.values() if p.is_active]

    def accepts(self, name: str) -> bool:
        return self.player_config.accepts(name)

    def apply(self, event) -> bool:
        """
        Apply one bus event.

        Args:
            event: Any waylrc.mpris.events value.

        Returns:
            True if the event touched a registered player.
        """
        if isinstance(event, PlayerAppeared):
            return self._appeared(event.name)
        if isinstance(event, PlayerVanished):
            return self._vanished(event.name)
        if isinstance(event, PlayerProbed):
            return self._apply_snapshot(event.snapshot)
        if isinstance(event, PropertiesChanged):
            return self._properties_changed(event)
        if isinstance(event, Seeked):
            return self._seeked(event.name, event.position_us)
        if isinstance(event, ResyncCompleted):
            return self._resync(event)
        raise TypeError(f"Unknown bus event: {event!r}")

    def _appeared(self, name: str) -> bool:
        if not self.accepts(name):
            logger.debug(f"Ignoring player outside the allow-list: {name}")
            return False
        if name in self._players:
            return False

        self._players[name] = Player(name=name, confirmed_at=self.clock())
        logger.info(f"Player appeared: {name}")
        return True

    def _vanished(self, name: str) -> bool:
        player = self._players.pop(name, None)
        if player is None:
            return False

        player.lifecycle = PlayerLifecycle.GONE
        logger.info(f"Player vanished: {name}")
        return True

    def _apply_snapshot(self, snapshot: PlayerSnapshot) -> bool:
        if not self.accepts(snapshot.name):
            return False

        player = self._players.get(snapshot.name)
        if player is None:
            player = Player(name=snapshot.name)
            self._players[snapshot.name] = player
            logger.info(f"Player appeared: {snapshot.name}")

        now = self.clock()
        self._set_track(player, snapshot.metadata, now)
        if snapshot.position_us is not None:
            player.position_ms = max(0, snapshot.position_us // 1000)
            player.confirmed_at = now
        else:
            self._rebase(player, now)
        player.rate = snapshot.rate if snapshot.rate is not None else 1.0
        self._set_status(player, snapshot.status)

        if player.lifecycle is not PlayerLifecycle.ACTIVE:
            player.lifecycle = PlayerLifecycle.ACTIVE
            logger.debug(
                f"Player active: {player.name} status={player.status.value} "
                f"position={player.position_ms}ms"
            )
        return True

    def _properties_changed(self, event: PropertiesChanged) -> bool:
        player = self._players.get(event.name)
        if player is None:
            return False

        now = self.clock()
        changed = event.changed

        if "PlaybackStatus" in changed or "Rate" in changed:
            # Freeze the extrapolated position before the basis changes
            self._rebase(player, now)

        if "Metadata" in changed:
            self._set_track(player, changed["Metadata"] or {}, now)

        if "Position" in changed and isinstance(changed["Position"], int):
            player.position_ms = max(0, changed["Position"] // 1000)
            player.confirmed_at = now

        if "Rate" in changed:
            try:
                player.rate = float(changed["Rate"])
            except (TypeError, ValueError):
                logger.debug(f"Ignoring malformed Rate from {player.name}: {changed['Rate']!r}")

        if "PlaybackStatus" in changed:
            self._set_status(player, PlaybackStatus.parse(changed["PlaybackStatus"]))

        return True

    def _seeked(self, name: str, position_us: int) -> bool:
        player = self._players.get(name)
        if player is None:
            return False

        player.position_ms = max(0, position_us // 1000)
        player.confirmed_at = self.clock()
        logger.debug(f"Seeked: {name} -> {player.position_ms}ms")
        return True

    def _resync(self, event: ResyncCompleted) -> bool:
        present = {name for name in event.names if self.accepts(name)}
        touched = False

        for name in list(self._players):
            if name not in present:
                touched = self._vanished(name) or touched

        for snapshot in event.snapshots:
            touched = self._apply_snapshot(snapshot) or touched

        logger.debug(f"Resync complete: {len(self._players)} player(s)")
        return touched

    def _rebase(self, player: Player, now: float) -> None:
        player.position_ms = estimate(player, now)
        player.confirmed_at = now

    def _set_track(self, player: Player, metadata: dict[str, Any], now: float) -> None:
        track = Track.from_metadata(metadata) if metadata else None
        previous = player.track
        player.metadata = dict(metadata)

        if track is None:
            if previous is not None:
                logger.debug(f"Track cleared: {player.name}")
            player.track = None
            return

        if previous is None or previous.fingerprint != track.fingerprint:
            # A new track starts at 0 until the player says otherwise
            player.position_ms = 0
            player.confirmed_at = now
            logger.info(f"Track changed on {player.name}: {track.display_name}")

        player.track = track

    def _set_status(self, player: Player, status: PlaybackStatus) -> None:
        if status is player.status and player.lifecycle is PlayerLifecycle.ACTIVE:
            return

        if status is PlaybackStatus.PLAYING and (
            player.status is not PlaybackStatus.PLAYING or player.playing_seq == 0
        ):
            player.playing_seq = next(self._sequence)

        if status is not player.status:
            logger.debug(f"{player.name}: {player.status.value} -> {status.value}")
        player.status = status
        player.active_seq = next(self._sequence)
