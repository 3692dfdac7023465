"""
Bus events.

The bus client translates D-Bus traffic into these values and pushes them
onto the daemon's evaluation queue; PlayerRegistry.apply() consumes them.
Positions are microseconds, exactly as MPRIS reports them.
"""

from dataclasses import dataclass, field
from typing import Any

from waylrc.mpris.models import PlayerSnapshot


@dataclass(frozen=True)
class PlayerAppeared:
    """An org.mpris.MediaPlayer2.* name gained an owner."""
    name: str


@dataclass(frozen=True)
class PlayerVanished:
    """An org.mpris.MediaPlayer2.* name lost its owner."""
    name: str


@dataclass(frozen=True)
class PlayerProbed:
    """Properties.GetAll finished for one player."""
    snapshot: PlayerSnapshot


@dataclass(frozen=True)
class PropertiesChanged:
    """
    org.freedesktop.DBus.Properties.PropertiesChanged on the player interface.

    Attributes:
        name: Well-known bus name of the sender.
        changed: Changed properties, variants unwrapped.
        invalidated: Names of properties whose new value was not sent.
    """
    name: str
    changed: dict[str, Any] = field(default_factory=dict)
    invalidated: tuple[str, ...] = ()


@dataclass(frozen=True)
class Seeked:
    """org.mpris.MediaPlayer2.Player.Seeked."""
    name: str
    position_us: int


@dataclass(frozen=True)
class ResyncCompleted:
    """
    Full enumeration of every player on the bus.

    Attributes:
        names: Every allow-listed MPRIS name owned on the bus. Registered
               players missing from it are considered gone.
        snapshots: One snapshot per player that answered. A name without a
                   snapshot keeps its current state until the next resync.
    """
    names: tuple[str, ...]
    snapshots: tuple[PlayerSnapshot, ...] = ()


BusEvent = (
    PlayerAppeared
    | PlayerVanished
    | PlayerProbed
    | PropertiesChanged
    | Seeked
    | ResyncCompleted
)
