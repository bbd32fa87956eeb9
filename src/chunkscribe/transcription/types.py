"""Type definitions for streaming transcription output."""

from dataclasses import dataclass, field

from ..decoder.types import FinalizedWord


@dataclass
class TranscriptSegment:
    """Words committed while one audio window was processed.

    start_ms/end_ms are the window bounds on the stream clock, not the words'
    own timing.
    """

    start_ms: int
    end_ms: int
    words: list[FinalizedWord] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Words joined by single spaces."""
        return " ".join(word.word for word in self.words)

    def format_line(self) -> str:
        """Render as "start: N ms - end: N ms : words"."""
        return f"start: {self.start_ms} ms - end: {self.end_ms} ms : {self.text}".rstrip()

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "start_ms": self.start_ms,
            "end_ms": self.end_ms,
            "text": self.text,
            "words": [word.to_dict() for word in self.words],
        }
