"""Window-by-window transcription of an audio stream.

StreamingTranscriber ties the pieces together:
- Reads fixed windows of PCM audio
- Runs them through the streaming module chain
- Feeds the emissions to a decoder session
- Yields one TranscriptSegment per window
"""

import logging
from collections.abc import Iterable, Iterator
from typing import BinaryIO, TextIO

from ..audio.reader import PCMWindowReader
from ..decoder.factory import DecoderFactory
from ..decoder.options import DecoderOptions
from ..modules.protocol import StreamingModule
from .types import TranscriptSegment

logger = logging.getLogger(__name__)


class StreamingTranscriber:
    """Turns an audio byte stream into time-stamped transcript segments.

    Example:
        transcriber = StreamingTranscriber(dnn, factory, options)
        with open("audio.wav", "rb") as f:
            transcriber.run(f, sys.stdout)

    The module chain is reset and a fresh decoder session is created at the
    start of every transcribe() call, so one transcriber can handle several
    streams one after the other (but not concurrently).
    """

    def __init__(
        self,
        module: StreamingModule,
        decoder_factory: DecoderFactory,
        options: DecoderOptions,
        window_ms: int = 500,
        sample_rate: int = 16000,
        context_words: Iterable[str] = (),
    ):
        self.module = module
        self.decoder_factory = decoder_factory
        self.options = options
        self.window_ms = window_ms
        self.sample_rate = sample_rate
        self.context_words = tuple(context_words)

    def transcribe(self, source: BinaryIO) -> Iterator[TranscriptSegment]:
        """Yield one segment per audio window, plus a tail segment when needed.

        The tail segment only appears when flushing the chain and finalizing
        the decoder at end of stream produces words; it reuses the bounds of
        the last window.
        """
        self.module.reset()
        session = self.decoder_factory.create_session(self.options, self.context_words)
        reader = PCMWindowReader(source, window_ms=self.window_ms, sample_rate=self.sample_rate)

        last_start_ms = last_end_ms = 0
        for window in reader:
            emissions = self.module.forward(window.samples)
            words = session.step(emissions)
            last_start_ms, last_end_ms = window.start_ms, window.end_ms
            logger.debug(
                f"Window {window.index}: {window.start_ms}-{window.end_ms} ms, "
                f"{len(emissions)} frames, {len(words)} words"
            )
            yield TranscriptSegment(window.start_ms, window.end_ms, words)

        tail = self.module.finish()
        words = session.step(tail) if tail is not None else []
        words.extend(session.finalize())
        logger.info(f"Stream finished: {session.frames_decoded} frames, {reader.samples_read} samples")
        if words:
            yield TranscriptSegment(last_start_ms, last_end_ms, words)

    def run(self, source: BinaryIO, sink: TextIO) -> int:
        """Write one line per segment to sink, flushing each. Returns the line count."""
        lines = 0
        for segment in self.transcribe(source):
            sink.write(segment.format_line() + "\n")
            sink.flush()
            lines += 1
        return lines
