"""
Waybar output.

Serializes ActiveLineDecision values as Waybar custom-module records, one
JSON object per line on stdout:

    {"text": "current line", "tooltip": "xesam:title: Song\\n...",
     "class": "lyrics", "alt": "mpv"}

Strings are escaped for Pango markup. A record is written only when the
decision differs materially from the previous one, so repeated
evaluations never make the bar flicker.
"""

import html
import json
import sys
from typing import Any, TextIO

from waylrc.core.config import OutputConfig, short_player_name
from waylrc.core.logger import get_logger
from waylrc.mpris.models import PlaybackStatus
from waylrc.sync.scheduler import ActiveLineDecision


logger = get_logger(__name__)


# Metadata values longer than this are summarized in the tooltip
MAX_TOOLTIP_VALUE_LENGTH = 256

PAUSED_CLASS = "paused"


def escape(text: str) -> str:
    """Escape &, < and > for Pango markup."""
    return html.escape(text, quote=False)


def format_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return "; ".join(format_value(v) for v in value)
    if isinstance(value, dict):
        return ", ".join(f"{k}={format_value(v)}" for k, v in value.items())
    if isinstance(value, bytes):
        return f"({len(value)} bytes blob)"
    return str(value)


def format_metadata(metadata: dict[str, Any], skip: tuple[str, ...] = ()) -> str:
    """
    Render player metadata as tooltip lines.

    Args:
        metadata: Unwrapped MPRIS metadata.
        skip: Keys to leave out.

    Returns:
        "key: value" lines sorted by key. Values longer than 256 characters
        are replaced by "(N bytes blob)".

    Example:
        format_metadata({"xesam:title": "Song", "xesam:asText": "..."}, ("xesam:asText",))
        # "xesam:title: Song"
    """
    lines = []
    for key in sorted(metadata):
        if key in skip:
            continue
        text = format_value(metadata[key])
        if len(text) > MAX_TOOLTIP_VALUE_LENGTH:
            text = f"({len(text.encode('utf-8'))} bytes blob)"
        lines.append(f"{key}: {text}")
    return "\n".join(lines)


def build_record(decision: ActiveLineDecision, skip: tuple[str, ...] = ()) -> dict[str, Any]:
    """
    Build the Waybar record for a decision.

    Empty optional fields are omitted.
    """
    record: dict[str, Any] = {"text": escape(decision.text)}

    tooltip = format_metadata(decision.metadata, skip)
    if tooltip:
        record["tooltip"] = escape(tooltip)

    classes = [decision.state.value]
    if decision.status is PlaybackStatus.PAUSED:
        classes.append(PAUSED_CLASS)
    record["class"] = classes[0] if len(classes) == 1 else classes

    if decision.player:
        record["alt"] = escape(short_player_name(decision.player))

    return record


class OutputEmitter:
    """
    Writes deduplicated Waybar records.

    Attributes:
        output_config: Tooltip skip list.
        stream: Destination, stdout by default. Flushed after every record.

    Example:
        emitter = OutputEmitter(config.output)
        emitter.emit(decision)  # True: written
        emitter.emit(decision)  # False: nothing changed
    """

    def __init__(self, output_config: OutputConfig, stream: TextIO | None = None) -> None:
        self.output_config = output_config
        self.stream = stream if stream is not None else sys.stdout
        self._last_key: tuple | None = None

    def emit(self, decision: ActiveLineDecision) -> bool:
        """
        Write a record if the decision changed materially.

        Returns:
            True if a record was written.
        """
        key = decision.material_key
        if key == self._last_key:
            return False

        record = build_record(decision, self.output_config.skip_metadata)
        self.stream.write(json.dumps(record, ensure_ascii=False) + "\n")
        self.stream.flush()
        self._last_key = key

        logger.debug(f"Emitted {decision.state.value} line={decision.line_index} player={decision.player}")
        return True
