"""
MPRIS player tracking.

The registry lives in waylrc.mpris.registry; it depends on the position
estimator in waylrc.sync.
"""

from waylrc.mpris.bus import MprisBus
from waylrc.mpris.events import (
    BusEvent,
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

__all__ = [
    "MprisBus",
    # Events
    "BusEvent",
    "PlayerAppeared",
    "PlayerVanished",
    "PlayerProbed",
    "PropertiesChanged",
    "Seeked",
    "ResyncCompleted",
    # Models
    "PlaybackStatus",
    "Player",
    "PlayerLifecycle",
    "PlayerSnapshot",
    "Track",
]
