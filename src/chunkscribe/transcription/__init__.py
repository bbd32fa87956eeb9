"""Streaming transcription: window reading, decoding and transcript output."""

from .pipeline import build_transcriber, open_audio_source
from .transcriber import StreamingTranscriber
from .types import TranscriptSegment

__all__ = [
    "StreamingTranscriber",
    "TranscriptSegment",
    "build_transcriber",
    "open_audio_source",
]
