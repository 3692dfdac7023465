"""
Lyric models, LRC parsing and resolution.

The pipeline and providers are imported from their own modules:

    from waylrc.lyrics.pipeline import LyricsPipeline
    from waylrc.lyrics.providers import build_providers
"""

from waylrc.lyrics.models import (
    IN_FLIGHT,
    UNAVAILABLE,
    LyricDocument,
    LyricLine,
    Resolution,
    ResolutionState,
)
from waylrc.lyrics.parser import format_timestamp, parse, parse_timestamp, split_concatenated

__all__ = [
    # Models
    "LyricLine",
    "LyricDocument",
    "Resolution",
    "ResolutionState",
    "IN_FLIGHT",
    "UNAVAILABLE",
    # Parser
    "parse",
    "parse_timestamp",
    "format_timestamp",
    "split_concatenated",
]
