"""Fixed-window reader for raw 16-bit PCM streams.

Provides PCMWindowReader that:
- Blocks until a whole window of samples is available (or the stream ends)
- Skips a leading RIFF/WAVE header so .wav files can be piped in as-is
- Stamps window k with [k * window_ms, (k + 1) * window_ms), clipping only the short last window
"""

import logging
import struct
from collections.abc import Iterator
from dataclasses import dataclass
from typing import BinaryIO

import numpy as np

from .conversion import BYTES_PER_SAMPLE, pcm16_bytes_to_float32

logger = logging.getLogger(__name__)

_RIFF_HEADER_SIZE = 12
_CHUNK_HEADER_SIZE = 8


@dataclass
class AudioWindow:
    """One fixed-duration slice of the input stream."""

    index: int
    samples: np.ndarray
    start_ms: int
    end_ms: int
    is_last: bool = False

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms


class PCMWindowReader:
    """Iterate an int16 mono PCM byte stream in fixed time windows.

    Example:
        with open("audio.wav", "rb") as f:
            for window in PCMWindowReader(f, window_ms=500):
                print(window.start_ms, window.end_ms, len(window.samples))

    A window shorter than window_ms is only produced at end of stream and is
    flagged with is_last. A stream whose length is an exact multiple of the
    window produces no short window.
    """

    def __init__(self, source: BinaryIO, window_ms: int = 500, sample_rate: int = 16000):
        if window_ms <= 0:
            raise ValueError(f"window_ms must be positive, got {window_ms}")
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")

        self.source = source
        self.window_ms = window_ms
        self.sample_rate = sample_rate
        self.window_samples = window_ms * sample_rate // 1000

        self._pending = b""
        self._header_checked = False
        self._samples_read = 0
        self._exhausted = False

    @property
    def samples_read(self) -> int:
        """Total samples handed out so far."""
        return self._samples_read

    def _read_exact(self, size: int) -> bytes:
        """Read size bytes, retrying short reads until the source is exhausted."""
        parts = []
        if self._pending:
            parts.append(self._pending[:size])
            self._pending = self._pending[size:]
        collected = sum(len(p) for p in parts)

        while collected < size and not self._exhausted:
            data = self.source.read(size - collected)
            if not data:
                self._exhausted = True
                break
            parts.append(data)
            collected += len(data)

        return b"".join(parts)

    def _skip_wav_header(self) -> None:
        self._header_checked = True
        head = self._read_exact(_RIFF_HEADER_SIZE)
        if len(head) < _RIFF_HEADER_SIZE or head[:4] != b"RIFF" or head[8:12] != b"WAVE":
            # Raw PCM: the bytes read while checking are audio
            self._pending = head + self._pending
            return

        while True:
            chunk_header = self._read_exact(_CHUNK_HEADER_SIZE)
            if len(chunk_header) < _CHUNK_HEADER_SIZE:
                logger.warning("WAV header without data chunk, treating stream as empty")
                return
            chunk_id, chunk_size = struct.unpack("<4sI", chunk_header)
            if chunk_id == b"data":
                logger.debug("Skipped WAV header, PCM data follows")
                return

            body = self._read_exact(chunk_size + (chunk_size % 2))
            if chunk_id == b"fmt " and len(body) >= 16:
                _, channels, rate, _, _, bits = struct.unpack("<HHIIHH", body[:16])
                if channels != 1 or rate != self.sample_rate or bits != 16:
                    logger.warning(
                        f"WAV format is {channels}ch/{rate}Hz/{bits}bit, "
                        f"expected 1ch/{self.sample_rate}Hz/16bit; reading samples as-is"
                    )

    def read_window(self, index: int) -> AudioWindow | None:
        """Read the next window, or None once the stream is exhausted."""
        if not self._header_checked:
            self._skip_wav_header()

        wanted = self.window_samples * BYTES_PER_SAMPLE
        data = self._read_exact(wanted)
        if len(data) % BYTES_PER_SAMPLE:
            logger.warning("Dropping trailing odd byte at end of audio stream")
        samples = pcm16_bytes_to_float32(data)
        if samples.size == 0:
            return None

        self._samples_read += samples.size
        is_last = samples.size < self.window_samples
        start_ms = index * self.window_ms
        if is_last:
            end_ms = start_ms + samples.size * 1000 // self.sample_rate
        else:
            end_ms = start_ms + self.window_ms

        return AudioWindow(
            index=index,
            samples=samples,
            start_ms=start_ms,
            end_ms=end_ms,
            is_last=is_last,
        )

    def __iter__(self) -> Iterator[AudioWindow]:
        index = 0
        while True:
            window = self.read_window(index)
            if window is None:
                return
            yield window
            if window.is_last:
                return
            index += 1
