# tests/test_bus.py
"""Test translation of D-Bus traffic into player events"""

import pytest
from dbus_next import Message, MessageType, Variant

from waylrc.core.config import PlayerConfig
from waylrc.core.exceptions import BusError
from waylrc.mpris.bus import (
    DBUS_INTERFACE,
    DBUS_PATH,
    MPRIS_PATH,
    PLAYER_INTERFACE,
    PROPERTIES_INTERFACE,
    MprisBus,
    snapshot_from_properties,
    unwrap,
)
from waylrc.mpris.events import (
    PlayerAppeared,
    PlayerVanished,
    PropertiesChanged,
    ResyncCompleted,
    Seeked,
)
from waylrc.mpris.models import PlaybackStatus


MPV = "org.mpris.MediaPlayer2.mpv"
UNIQUE = ":1.42"


@pytest.fixture
def events():
    return []


@pytest.fixture
def bus(events):
    """Unconnected bus delivering events into a list"""
    return MprisBus(accepts=PlayerConfig(allowed=("mpv",)).accepts, sink=events.append)


def name_owner_changed(name, old_owner, new_owner):
    return Message(
        message_type=MessageType.SIGNAL,
        sender="org.freedesktop.DBus",
        path=DBUS_PATH,
        interface=DBUS_INTERFACE,
        member="NameOwnerChanged",
        signature="sss",
        body=[name, old_owner, new_owner],
    )


def properties_changed(changed, invalidated=(), sender=UNIQUE, interface=PLAYER_INTERFACE):
    return Message(
        message_type=MessageType.SIGNAL,
        sender=sender,
        path=MPRIS_PATH,
        interface=PROPERTIES_INTERFACE,
        member="PropertiesChanged",
        signature="sa{sv}as",
        body=[interface, changed, list(invalidated)],
    )


def seeked(position_us, sender=UNIQUE):
    return Message(
        message_type=MessageType.SIGNAL,
        sender=sender,
        path=MPRIS_PATH,
        interface=PLAYER_INTERFACE,
        member="Seeked",
        signature="x",
        body=[position_us],
    )


class TestUnwrap:
    """Test variant unwrapping"""

    def test_nested_variants(self):
        """Test variants inside dicts and lists are replaced"""
        value = {
            "xesam:title": Variant("s", "Song"),
            "xesam:artist": Variant("as", ["A", "B"]),
            "nested": [Variant("i", 1), {"deep": Variant("b", True)}],
        }

        assert unwrap(value) == {
            "xesam:title": "Song",
            "xesam:artist": ["A", "B"],
            "nested": [1, {"deep": True}],
        }

    def test_plain_values(self):
        """Test non-variant values pass through"""
        assert unwrap(5) == 5
        assert unwrap("x") == "x"


class TestSnapshotFromProperties:
    """Test GetAll results become snapshots"""

    def test_complete_properties(self, sample_metadata):
        """Test every property is carried over"""
        snapshot = snapshot_from_properties(MPV, {
            "PlaybackStatus": "Playing",
            "Metadata": sample_metadata,
            "Position": 5_000_000,
            "Rate": 1.0,
        })

        assert snapshot.status is PlaybackStatus.PLAYING
        assert snapshot.metadata == sample_metadata
        assert snapshot.position_us == 5_000_000
        assert snapshot.rate == 1.0

    def test_missing_properties(self):
        """Test absent or malformed values fall back to unknown"""
        snapshot = snapshot_from_properties(MPV, {"PlaybackStatus": "Bogus", "Metadata": "nope"})

        assert snapshot.status is PlaybackStatus.STOPPED
        assert snapshot.metadata == {}
        assert snapshot.position_us is None
        assert snapshot.rate is None


class TestSignals:
    """Test signal handling"""

    @pytest.mark.asyncio
    async def test_player_appears(self, bus, events):
        """Test a new MPRIS name emits PlayerAppeared and maps its owner"""
        bus._on_message(name_owner_changed(MPV, "", UNIQUE))

        assert events == [PlayerAppeared(MPV)]
        assert bus.names_for(UNIQUE) == [MPV]
        await bus.close()

    def test_player_vanishes(self, bus, events):
        """Test a released name emits PlayerVanished"""
        bus._owners[UNIQUE] = {MPV}

        bus._on_message(name_owner_changed(MPV, UNIQUE, ""))

        assert events == [PlayerVanished(MPV)]
        assert bus.names_for(UNIQUE) == []

    def test_disallowed_player_is_ignored(self, bus, events):
        """Test players outside the allow-list never appear"""
        bus._on_message(name_owner_changed("org.mpris.MediaPlayer2.vlc", "", ":1.7"))

        assert events == []

    def test_non_mpris_names_are_ignored(self, bus, events):
        """Test unrelated bus names are not players"""
        bus._on_message(name_owner_changed("org.freedesktop.Notifications", "", ":1.9"))

        assert events == []

    def test_properties_changed(self, bus, events):
        """Test changes from a unique name reach the owning player"""
        bus._owners[UNIQUE] = {MPV}

        bus._on_message(properties_changed({"PlaybackStatus": Variant("s", "Paused")}))

        assert events == [PropertiesChanged(MPV, {"PlaybackStatus": "Paused"}, ())]

    def test_other_interface_is_ignored(self, bus, events):
        """Test PropertiesChanged for the root interface is dropped"""
        bus._owners[UNIQUE] = {MPV}

        bus._on_message(properties_changed(
            {"Identity": Variant("s", "mpv")},
            interface="org.mpris.MediaPlayer2",
        ))

        assert events == []

    def test_unknown_sender_is_ignored(self, bus, events):
        """Test signals from unmapped connections are dropped"""
        bus._on_message(properties_changed({"Rate": Variant("d", 2.0)}, sender=":1.99"))

        assert events == []

    def test_seeked(self, bus, events):
        """Test Seeked carries the new position in microseconds"""
        bus._owners[UNIQUE] = {MPV}

        bus._on_message(seeked(42_000_000))

        assert events == [Seeked(MPV, 42_000_000)]

    def test_method_calls_are_ignored(self, bus, events):
        """Test only signals are handled"""
        bus._on_message(Message(
            destination=MPV,
            path=MPRIS_PATH,
            interface=PLAYER_INTERFACE,
            member="PlayPause",
        ))

        assert events == []


class TestNames:
    """Test sender resolution"""

    def test_well_known_sender(self, bus):
        """Test a well-known sender maps to itself"""
        assert bus.names_for(MPV) == [MPV]

    def test_missing_sender(self, bus):
        assert bus.names_for(None) == []


class TestResync:
    """Test full re-enumeration against a stubbed bus"""

    @pytest.mark.asyncio
    async def test_unreadable_player_is_still_listed(self, bus, monkeypatch):
        """Test a player that fails to answer stays in the resync name list"""
        stuck = "org.mpris.MediaPlayer2.mpv.instance2"

        async def list_players():
            return [MPV, stuck]

        async def get_owner(name):
            return UNIQUE if name == MPV else ":1.43"

        async def read_player(name, timeout=1.0):
            if name == stuck:
                raise BusError(f"GetAll on {name} timed out", details={"timed_out": True})
            return snapshot_from_properties(name, {"PlaybackStatus": "Playing"})

        monkeypatch.setattr(bus, "list_players", list_players)
        monkeypatch.setattr(bus, "get_owner", get_owner)
        monkeypatch.setattr(bus, "read_player", read_player)

        event = await bus.snapshot_all()

        assert isinstance(event, ResyncCompleted)
        assert event.names == (MPV, stuck)
        assert [s.name for s in event.snapshots] == [MPV]
        assert bus.names_for(":1.43") == [stuck]

    @pytest.mark.asyncio
    async def test_owner_map_stays_live_during_lookups(self, bus, monkeypatch):
        """Test signals are still routed while owners are being looked up"""
        bus._owners[UNIQUE] = {MPV}
        seen_during_lookup = []

        async def list_players():
            return [MPV]

        async def get_owner(name):
            seen_during_lookup.append(bus.names_for(UNIQUE))
            return ":1.50"

        async def read_player(name, timeout=1.0):
            return snapshot_from_properties(name, {"PlaybackStatus": "Paused"})

        monkeypatch.setattr(bus, "list_players", list_players)
        monkeypatch.setattr(bus, "get_owner", get_owner)
        monkeypatch.setattr(bus, "read_player", read_player)

        await bus.snapshot_all()

        assert seen_during_lookup == [[MPV]]
        assert bus.names_for(":1.50") == [MPV]
        assert bus.names_for(UNIQUE) == []


class TestDisconnected:
    """Test behavior before connect()"""

    @pytest.mark.asyncio
    async def test_snapshot_all_requires_connection(self, bus):
        """Test calls fail with BusError when not connected"""
        with pytest.raises(BusError, match="Not connected"):
            await bus.snapshot_all()

    @pytest.mark.asyncio
    async def test_get_owner_without_connection(self, bus):
        """Test owner lookups degrade to None"""
        assert await bus.get_owner(MPV) is None

    @pytest.mark.asyncio
    async def test_close_is_safe(self, bus):
        await bus.close()
        await bus.close()
