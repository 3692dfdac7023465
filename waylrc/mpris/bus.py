"""
MPRIS session bus client (dbus-next, asyncio).

Translates D-Bus traffic into waylrc.mpris.events values and hands them to
a sink (the daemon's queue). It never touches the registry directly.

Signals listened to:
    - org.freedesktop.DBus.NameOwnerChanged for org.mpris.MediaPlayer2.*
    - org.freedesktop.DBus.Properties.PropertiesChanged on the player interface
    - org.mpris.MediaPlayer2.Player.Seeked

Player signals arrive from unique connection names (":1.42"), so the client
keeps a map from unique names to the well-known names they own.

Usage:
    bus = MprisBus(accepts=config.players.accepts, sink=queue.put_nowait)
    await bus.connect()
    event = await bus.snapshot_all()
    bus.probe_later("org.mpris.MediaPlayer2.mpv")
    await bus.close()
"""

import asyncio
from collections.abc import Callable
from typing import Any

from dbus_next import BusType, Message, MessageType, Variant
from dbus_next.aio import MessageBus
from dbus_next.errors import AuthError, InvalidAddressError

from waylrc.core.config import MPRIS_BUS_PREFIX
from waylrc.core.exceptions import BusError
from waylrc.core.logger import get_logger
from waylrc.mpris.events import (
    PlayerAppeared,
    PlayerProbed,
    PlayerVanished,
    PropertiesChanged,
    ResyncCompleted,
    Seeked,
)
from waylrc.mpris.models import PlaybackStatus, PlayerSnapshot


logger = get_logger(__name__)


# =============================================================================
# D-BUS NAMES
# =============================================================================

DBUS_NAME = "org.freedesktop.DBus"
DBUS_PATH = "/org/freedesktop/DBus"
DBUS_INTERFACE = "org.freedesktop.DBus"
PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"

MPRIS_PATH = "/org/mpris/MediaPlayer2"
PLAYER_INTERFACE = "org.mpris.MediaPlayer2.Player"

MATCH_RULES = (
    "type='signal',sender='org.freedesktop.DBus',interface='org.freedesktop.DBus',"
    "member='NameOwnerChanged',arg0namespace='org.mpris.MediaPlayer2'",
    "type='signal',interface='org.freedesktop.DBus.Properties',"
    "member='PropertiesChanged',path='/org/mpris/MediaPlayer2',"
    "arg0='org.mpris.MediaPlayer2.Player'",
    "type='signal',interface='org.mpris.MediaPlayer2.Player',"
    "member='Seeked',path='/org/mpris/MediaPlayer2'",
)

# =============================================================================
# TIMEOUTS
# =============================================================================

# Plain method calls (ListNames, GetNameOwner, AddMatch)
CALL_TIMEOUT_SECONDS = 5.0

# Probing a freshly appeared player: players often register their name
# before their object is ready, so GetAll is retried with growing timeouts
PROBE_INITIAL_TIMEOUT_SECONDS = 2.0
PROBE_TIMEOUT_FACTOR = 1.3
PROBE_MAX_TIMEOUT_SECONDS = 10.0


def unwrap(value: Any) -> Any:
    """
    Recursively replace dbus-next Variants with their plain values.

    Example:
        unwrap({"xesam:artist": Variant("as", ["A"])})  # {"xesam:artist": ["A"]}
    """
    if isinstance(value, Variant):
        return unwrap(value.value)
    if isinstance(value, dict):
        return {k: unwrap(v) for k, v in value.items()}
    if isinstance(value, list):
        return [unwrap(v) for v in value]
    return value


def snapshot_from_properties(name: str, properties: dict[str, Any]) -> PlayerSnapshot:
    """
    Build a PlayerSnapshot from unwrapped Properties.GetAll output.

    Missing or malformed properties fall back to "unknown".
    """
    metadata = properties.get("Metadata")
    position = properties.get("Position")
    rate = properties.get("Rate")

    return PlayerSnapshot(
        name=name,
        status=PlaybackStatus.parse(properties.get("PlaybackStatus")),
        metadata=metadata if isinstance(metadata, dict) else {},
        position_us=position if isinstance(position, int) else None,
        rate=float(rate) if isinstance(rate, (int, float)) else None,
    )


class MprisBus:
    """
    Session bus connection specialized for MPRIS players.

    Attributes:
        accepts: Allow-list predicate on well-known names.
        sink: Receives every event; must not block.
    """

    def __init__(
        self,
        accepts: Callable[[str], bool],
        sink: Callable[[Any], None],
        bus_type: BusType = BusType.SESSION
    ) -> None:
        self.accepts = accepts
        self.sink = sink
        self.bus_type = bus_type
        self._bus: MessageBus | None = None
        self._owners: dict[str, set[str]] = {}
        self._probes: dict[str, asyncio.Task] = {}

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Connect to the bus and subscribe to MPRIS signals.

        Raises:
            BusError: If the bus is unreachable.
        """
        try:
            self._bus = await MessageBus(bus_type=self.bus_type).connect()
        except (OSError, AuthError, InvalidAddressError) as e:
            raise BusError(
                f"Cannot connect to the session bus: {e}",
                details={"original_error": str(e)}
            ) from e

        self._bus.add_message_handler(self._on_message)
        for rule in MATCH_RULES:
            await self._call_dbus("AddMatch", "s", [rule])
        logger.debug(f"Connected to the session bus as {self._bus.unique_name}")

    async def wait_for_disconnect(self) -> None:
        """Return when the bus connection drops."""
        if self._bus is not None:
            await self._bus.wait_for_disconnect()

    async def close(self) -> None:
        probes = list(self._probes.values())
        for task in probes:
            task.cancel()
        if probes:
            await asyncio.wait(probes)

        if self._bus is not None:
            self._bus.disconnect()
            self._bus = None

    # -------------------------------------------------------------------------
    # Method calls
    # -------------------------------------------------------------------------

    async def _call(self, message: Message, timeout: float) -> Message:
        if self._bus is None:
            raise BusError("Not connected to the session bus")

        details = {"destination": message.destination, "member": message.member}
        try:
            reply = await asyncio.wait_for(self._bus.call(message), timeout)
        except asyncio.TimeoutError as e:
            raise BusError(
                f"{message.member} on {message.destination} timed out",
                details={**details, "timed_out": True}
            ) from e
        except (OSError, EOFError) as e:
            raise BusError(
                f"{message.member} on {message.destination} failed: {e}",
                details={**details, "original_error": str(e)}
            ) from e

        if reply is None or reply.message_type is MessageType.ERROR:
            error_name = reply.error_name if reply is not None else "no reply"
            raise BusError(
                f"{message.member} on {message.destination} failed: {error_name}",
                details={**details, "error_name": error_name}
            )
        return reply

    async def _call_dbus(self, member: str, signature: str = "", body: list | None = None) -> Message:
        return await self._call(Message(
            destination=DBUS_NAME,
            path=DBUS_PATH,
            interface=DBUS_INTERFACE,
            member=member,
            signature=signature,
            body=body or [],
        ), CALL_TIMEOUT_SECONDS)

    async def list_players(self) -> list[str]:
        """Well-known MPRIS names currently on the bus, allow-listed."""
        reply = await self._call_dbus("ListNames")
        return sorted(
            name for name in reply.body[0]
            if name.startswith(MPRIS_BUS_PREFIX) and self.accepts(name)
        )

    async def get_owner(self, name: str) -> str | None:
        try:
            reply = await self._call_dbus("GetNameOwner", "s", [name])
        except BusError as e:
            logger.debug(f"No owner for {name}: {e}")
            return None
        return reply.body[0]

    async def read_player(self, name: str, timeout: float = CALL_TIMEOUT_SECONDS) -> PlayerSnapshot:
        """
        Read every player property with Properties.GetAll.

        Raises:
            BusError: On timeout or D-Bus error; details['timed_out'] is set
                      for timeouts.
        """
        reply = await self._call(Message(
            destination=name,
            path=MPRIS_PATH,
            interface=PROPERTIES_INTERFACE,
            member="GetAll",
            signature="s",
            body=[PLAYER_INTERFACE],
        ), timeout)
        return snapshot_from_properties(name, unwrap(reply.body[0]))

    async def _track_owner(self, name: str) -> None:
        owner = await self.get_owner(name)
        if owner is not None:
            self._owners.setdefault(owner, set()).add(name)

    # -------------------------------------------------------------------------
    # Probing and resync
    # -------------------------------------------------------------------------

    async def probe(self, name: str) -> None:
        """
        Read a player with growing timeouts and emit PlayerProbed.

        Gives up (with a warning) once the timeout would exceed 10 seconds
        or on a non-timeout error such as the name disappearing.
        """
        await self._track_owner(name)

        timeout = PROBE_INITIAL_TIMEOUT_SECONDS
        while timeout <= PROBE_MAX_TIMEOUT_SECONDS:
            try:
                snapshot = await self.read_player(name, timeout)
            except BusError as e:
                if not e.details.get("timed_out"):
                    logger.warning(f"Cannot read player {name}: {e.message}")
                    return
                logger.debug(f"Probing {name} timed out after {timeout:.1f}s, retrying")
                timeout *= PROBE_TIMEOUT_FACTOR
                continue

            self.sink(PlayerProbed(snapshot))
            return

        logger.warning(f"Giving up on player {name}: not answering")

    def probe_later(self, name: str) -> None:
        """Start a probe in the background unless one is already running."""
        running = self._probes.get(name)
        if running is not None and not running.done():
            return

        task = asyncio.get_running_loop().create_task(self.probe(name))
        self._probes[name] = task
        task.add_done_callback(lambda t, n=name: self._probe_done(n, t))

    def _probe_done(self, name: str, task: asyncio.Task) -> None:
        if self._probes.get(name) is task:
            del self._probes[name]
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Probe of {name} crashed", exc_info=task.exception())

    async def _read_or_skip(self, name: str) -> PlayerSnapshot | None:
        try:
            return await self.read_player(name)
        except BusError as e:
            logger.warning(f"Skipping player {name} during resync: {e.message}")
            return None

    async def snapshot_all(self) -> ResyncCompleted:
        """
        Enumerate and read every allow-listed player.

        Also rebuilds the unique-name map. The new map replaces the old one
        only once every owner lookup has answered, so signals arriving
        meanwhile are still routed.

        Returns:
            ResyncCompleted listing every name found, with a snapshot for
            each player that could be read.

        Raises:
            BusError: If the bus itself cannot be listed.
        """
        names = await self.list_players()

        found = await asyncio.gather(*(self.get_owner(name) for name in names))
        owners: dict[str, set[str]] = {}
        for name, owner in zip(names, found):
            if owner is not None:
                owners.setdefault(owner, set()).add(name)
        self._owners = owners

        snapshots = await asyncio.gather(*(self._read_or_skip(name) for name in names))
        return ResyncCompleted(tuple(names), tuple(s for s in snapshots if s is not None))

    # -------------------------------------------------------------------------
    # Signals
    # -------------------------------------------------------------------------

    def names_for(self, sender: str | None) -> list[str]:
        """Well-known names owned by a unique sender name."""
        if sender is None:
            return []
        if sender.startswith(MPRIS_BUS_PREFIX):
            return [sender]
        return sorted(self._owners.get(sender, ()))

    def _on_message(self, message: Message) -> None:
        if message.message_type is not MessageType.SIGNAL:
            return

        if message.interface == DBUS_INTERFACE and message.member == "NameOwnerChanged":
            name, old_owner, new_owner = message.body
            if name.startswith(MPRIS_BUS_PREFIX):
                self._name_owner_changed(name, old_owner, new_owner)
            return

        if message.path != MPRIS_PATH:
            return

        if message.interface == PROPERTIES_INTERFACE and message.member == "PropertiesChanged":
            interface, changed, invalidated = message.body
            if interface != PLAYER_INTERFACE:
                return
            for name in self.names_for(message.sender):
                self.sink(PropertiesChanged(name, unwrap(changed), tuple(invalidated)))
                if invalidated:
                    self.probe_later(name)

        elif message.interface == PLAYER_INTERFACE and message.member == "Seeked":
            for name in self.names_for(message.sender):
                self.sink(Seeked(name, int(message.body[0])))

    def _name_owner_changed(self, name: str, old_owner: str, new_owner: str) -> None:
        if old_owner:
            owned = self._owners.get(old_owner)
            if owned is not None:
                owned.discard(name)
                if not owned:
                    del self._owners[old_owner]
            self.sink(PlayerVanished(name))

        if new_owner and self.accepts(name):
            self._owners.setdefault(new_owner, set()).add(name)
            self.sink(PlayerAppeared(name))
            self.probe_later(name)
