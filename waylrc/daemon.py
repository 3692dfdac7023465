"""
The waylrc daemon.

Wires the bus client, player registry, lyric pipeline, scheduler and
output emitter around one asyncio queue. Everything that can change the
display becomes a trigger on that queue:

    bus signals and probes  -> waylrc.mpris.events values
    timer expiry            -> WakeUp
    resolution completion   -> LyricsResolved
    bus connection loss     -> BusDisconnected

The loop pops one trigger at a time, applies it, re-evaluates and emits.
Registry and cache mutations therefore never overlap with an evaluation,
and exactly one wake-up timer is armed at any moment.

Usage:
    daemon = Daemon(config)
    await daemon.run()
"""

import asyncio
import signal
import time
from collections.abc import Callable
from dataclasses import dataclass

from waylrc.core.config import Config
from waylrc.core.exceptions import BusError, InvariantError
from waylrc.core.logger import get_logger
from waylrc.lyrics.pipeline import LyricsPipeline
from waylrc.lyrics.providers import build_providers
from waylrc.mpris.bus import MprisBus
from waylrc.mpris.models import Track
from waylrc.mpris.registry import PlayerRegistry
from waylrc.output.emitter import OutputEmitter
from waylrc.sync.scheduler import ActiveLineDecision, SyncScheduler


logger = get_logger(__name__)


@dataclass(frozen=True)
class WakeUp:
    """The wake-up timer fired."""


@dataclass(frozen=True)
class LyricsResolved:
    """A resolution task finished; error is set if it crashed."""
    track: Track
    error: BaseException | None = None


@dataclass(frozen=True)
class BusDisconnected:
    """The session bus connection dropped."""


class Daemon:
    """
    Event loop tying every component together.

    Attributes:
        config: Daemon configuration.
        queue: The evaluation queue.
        registry: PlayerRegistry fed from the queue.
        pipeline: LyricsPipeline, reporting completions onto the queue.
        bus: MprisBus (or a stand-in with the same coroutine methods).
        emitter: OutputEmitter.
        scheduler: SyncScheduler.
        clock: Monotonic clock in seconds shared by all components.

    Example:
        daemon = Daemon(config)
        asyncio.run(daemon.run())
    """

    def __init__(
        self,
        config: Config,
        bus=None,
        pipeline: LyricsPipeline | None = None,
        emitter: OutputEmitter | None = None,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.config = config
        self.clock = clock
        self.queue: asyncio.Queue = asyncio.Queue()

        self.registry = PlayerRegistry(config.players, clock=clock)
        self.pipeline = pipeline if pipeline is not None else LyricsPipeline(
            build_providers(config.providers),
            timeout=config.providers.timeout,
        )
        self.pipeline.on_resolved = self._on_resolved
        self.bus = bus if bus is not None else MprisBus(accepts=config.players.accepts, sink=self.queue.put_nowait)
        self.emitter = emitter if emitter is not None else OutputEmitter(config.output)
        self.scheduler = SyncScheduler(
            self.registry,
            self.pipeline,
            config.sync,
            config.players,
            clock=clock,
        )

        self._timer: asyncio.TimerHandle | None = None
        self._next_resync_at = 0.0
        self._resync_task: asyncio.Task | None = None
        self._watch_task: asyncio.Task | None = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def run(self) -> None:
        """
        Run until cancelled or a fatal error occurs.

        Raises:
            BusError: If the bus is unreachable at startup or drops later.
            InvariantError: If internal state becomes inconsistent.
        """
        await self.bus.connect()
        loop = asyncio.get_running_loop()
        self._watch_task = loop.create_task(self._watch_disconnect())

        self._start_resync()
        self._next_resync_at = self.clock() + self.config.sync.refresh_every
        self._evaluate(None)

        try:
            while True:
                trigger = await self.queue.get()
                self.handle(trigger)
                self._evaluate(trigger)
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Cancel timers and background work, close the bus and HTTP session."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        background = [t for t in (self._watch_task, self._resync_task) if t is not None and not t.done()]
        for task in background:
            task.cancel()
        if background:
            await asyncio.wait(background)

        await self.pipeline.close()
        await self.bus.close()

    def install_signal_handler(self, task: asyncio.Task) -> None:
        """Cancel the daemon task on SIGTERM; SIGINT stays a KeyboardInterrupt."""
        asyncio.get_running_loop().add_signal_handler(signal.SIGTERM, task.cancel)

    async def _watch_disconnect(self) -> None:
        await self.bus.wait_for_disconnect()
        self.queue.put_nowait(BusDisconnected())

    # -------------------------------------------------------------------------
    # Triggers
    # -------------------------------------------------------------------------

    def handle(self, trigger) -> None:
        """
        Apply one trigger to the daemon's state.

        Raises:
            BusError: On BusDisconnected.
            InvariantError: If a resolution task crashed.
        """
        if isinstance(trigger, WakeUp):
            self._timer = None
            now = self.clock()
            if now >= self._next_resync_at:
                self._start_resync()
                self._next_resync_at = now + self.config.sync.refresh_every
            return

        if isinstance(trigger, LyricsResolved):
            if trigger.error is not None:
                raise InvariantError(
                    f"Lyric resolution crashed for {trigger.track.display_name}",
                    details={"original_error": repr(trigger.error)}
                ) from trigger.error
            return

        if isinstance(trigger, BusDisconnected):
            raise BusError("Lost connection to the session bus")

        self.registry.apply(trigger)

    def _on_resolved(self, track: Track, error: BaseException | None) -> None:
        self.queue.put_nowait(LyricsResolved(track, error))

    def _start_resync(self) -> None:
        if self._resync_task is not None and not self._resync_task.done():
            return
        self._resync_task = asyncio.get_running_loop().create_task(self._resync())

    async def _resync(self) -> None:
        try:
            event = await self.bus.snapshot_all()
        except BusError as e:
            logger.warning(f"Resync failed, keeping current state: {e.message}")
            return
        self.queue.put_nowait(event)

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def _evaluate(self, trigger) -> ActiveLineDecision:
        decision = self.scheduler.evaluate()
        self.emitter.emit(decision)

        if isinstance(trigger, WakeUp) and decision.at_track_end and decision.player:
            # The player may have looped without telling us; ask it
            logger.debug(f"End of track reached on {decision.player}, refreshing")
            self.bus.probe_later(decision.player)

        deadline = self._next_resync_at
        if decision.stale_at is not None:
            deadline = min(deadline, decision.stale_at)
        self._arm_timer(deadline)
        return decision

    def _arm_timer(self, deadline: float) -> None:
        if self._timer is not None:
            self._timer.cancel()

        delay = max(0.0, deadline - self.clock())
        self._timer = asyncio.get_running_loop().call_later(
            delay, self.queue.put_nowait, WakeUp()
        )
