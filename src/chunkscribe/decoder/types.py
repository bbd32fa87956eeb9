"""Type definitions for decoding.

Provides:
- DecoderState: Lifecycle of a decoder session
- FinalizedWord: A committed word with frame span
"""

from dataclasses import dataclass
from enum import Enum


class DecoderState(Enum):
    """State of a decoder session."""

    ACTIVE = "active"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class FinalizedWord:
    """A word the decoder will never retract.

    Frame indices count emission frames from the start of the session.
    """

    word: str
    start_frame: int
    end_frame: int

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {"word": self.word, "start_frame": self.start_frame, "end_frame": self.end_frame}
