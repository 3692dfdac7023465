"""
Sync scheduler.

Decides, for one instant, which player is in focus, which lyric line is
active for it, and when that answer will next go stale. The scheduler holds
no state of its own: every evaluation reads the registry and the pipeline
cache afresh. The daemon owns the single wake-up timer and arms it from
ActiveLineDecision.stale_at.

Focal player selection:
    1. Among ACTIVE players that are Playing (rate != 0), the one that most
       recently transitioned to Playing, or with the "priority" focus
       policy the first in allow-list order
    2. Otherwise, if show_paused is enabled, the most recently active
       Paused player
    3. Otherwise none (idle)

Usage:
    scheduler = SyncScheduler(registry, pipeline, config.sync, config.players)
    decision = scheduler.evaluate()
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from waylrc.core.config import FocusPolicy, PlayerConfig, SyncConfig
from waylrc.core.exceptions import InvariantError
from waylrc.lyrics.models import LyricDocument, ResolutionState
from waylrc.mpris.models import PlaybackStatus, Player, Track
from waylrc.sync.position import deadline_for, estimate, is_clamped_at_end


class DecisionState(str, Enum):
    """
    What the output should show.

    IDLE: no focal player.
    LOADING: lyrics for the focal track are being resolved.
    UNAVAILABLE: the focal track has no lyrics (or no metadata at all).
    LYRICS: a lyric document is available; line_index says where we are.
    """
    IDLE = "idle"
    LOADING = "loading"
    UNAVAILABLE = "unavailable"
    LYRICS = "lyrics"


@dataclass(frozen=True)
class ActiveLineDecision:
    """
    Result of one evaluation.

    Attributes:
        state: See DecisionState.
        player: Focal player's bus name.
        status: Focal player's effective PlaybackStatus.
        track: Focal track.
        line_index: Active line, None before the first line or without lyrics.
        text: Active line's text, empty when there is none.
        offset_ms: Estimated playback offset used for the decision.
        stale_at: Monotonic instant at which the decision may change on its
                  own (next line, or end of track). None when only an
                  external event can change it.
        at_track_end: The focal player's estimate is pinned at the track length.
        metadata: Focal player's metadata, for the tooltip.

    Equality ignores the fields that do not change what is displayed.
    """
    state: DecisionState
    player: str | None = None
    status: PlaybackStatus | None = None
    track: Track | None = None
    line_index: int | None = None
    text: str = ""
    offset_ms: int | None = field(default=None, compare=False)
    stale_at: float | None = field(default=None, compare=False)
    at_track_end: bool = field(default=False, compare=False)
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def material_key(self) -> tuple:
        """Identity of what is displayed; equal keys need no re-emission."""
        fingerprint = self.track.fingerprint if self.track is not None else None
        return (self.state, self.player, self.status, fingerprint, self.line_index)


IDLE_DECISION = ActiveLineDecision(DecisionState.IDLE)


class SyncScheduler:
    """
    Computes ActiveLineDecision values.

    Attributes:
        registry: PlayerRegistry (read only).
        pipeline: LyricsPipeline; request() is used so that evaluating a
                  new track starts its resolution.
        sync_config: show_paused and focus policy.
        player_config: Allow-list order for the priority policy.
        clock: Monotonic clock in seconds.
    """

    def __init__(
        self,
        registry,
        pipeline,
        sync_config: SyncConfig,
        player_config: PlayerConfig,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.registry = registry
        self.pipeline = pipeline
        self.sync_config = sync_config
        self.player_config = player_config
        self.clock = clock

    def select_focal(self) -> Player | None:
        active = self.registry.active_players()

        playing = [p for p in active if p.effective_status is PlaybackStatus.PLAYING]
        if playing:
            if self.sync_config.focus is FocusPolicy.PRIORITY and self.player_config.allowed:
                return min(playing, key=lambda p: (
                    self.player_config.priority_of(p.name), -p.playing_seq, p.name
                ))
            return min(playing, key=lambda p: (-p.playing_seq, p.name))

        if self.sync_config.show_paused:
            paused = [p for p in active if p.effective_status is PlaybackStatus.PAUSED]
            if paused:
                return min(paused, key=lambda p: (-p.active_seq, p.name))

        return None

    def evaluate(self, now: float | None = None) -> ActiveLineDecision:
        """
        Compute the decision for an instant.

        Args:
            now: Monotonic time, defaults to the scheduler's clock.

        Returns:
            ActiveLineDecision; its stale_at tells the daemon when to
            evaluate again.
        """
        now = self.clock() if now is None else now

        player = self.select_focal()
        if player is None:
            return IDLE_DECISION

        common = {
            "player": player.name,
            "status": player.effective_status,
            "track": player.track,
            "metadata": player.metadata,
        }

        if player.track is None:
            return ActiveLineDecision(DecisionState.UNAVAILABLE, **common)

        resolution = self.pipeline.request(player.track)
        if resolution.state is ResolutionState.IN_FLIGHT:
            return ActiveLineDecision(DecisionState.LOADING, **common)
        if resolution.state is ResolutionState.UNAVAILABLE:
            return ActiveLineDecision(DecisionState.UNAVAILABLE, **common)

        document = resolution.document
        offset = estimate(player, now)
        index = document.active_index(offset)
        if index is not None and not 0 <= index < len(document):
            raise InvariantError(
                "Active line index outside the document",
                details={"player": player.name, "index": index, "lines": len(document)}
            )

        at_end = is_clamped_at_end(player, now)
        return ActiveLineDecision(
            DecisionState.LYRICS,
            line_index=index,
            text=document.lines[index].text if index is not None else "",
            offset_ms=offset,
            stale_at=self._next_wakeup(player, document, index, at_end),
            at_track_end=at_end,
            **common,
        )

    def _next_wakeup(
        self,
        player: Player,
        document: LyricDocument,
        index: int | None,
        at_end: bool
    ) -> float | None:
        candidates = []

        if player.rate > 0:
            target = document.next_timestamp(index)
        elif player.rate < 0 and index is not None:
            # Playing backwards: stale once the current line's start is crossed
            target = document.timestamps[index] - 1
        else:
            target = None

        length_ms = player.track.length_ms if player.track is not None else None

        # Offsets outside [0, length] are never reached by the clamped estimate
        if target is not None and target >= 0 and (length_ms is None or target <= length_ms):
            candidates.append(deadline_for(player, target))

        if length_ms is not None and player.rate > 0 and not at_end:
            candidates.append(deadline_for(player, length_ms))

        candidates = [c for c in candidates if c is not None]
        return min(candidates) if candidates else None
