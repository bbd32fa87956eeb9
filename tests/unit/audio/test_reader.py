"""Unit tests for PCMWindowReader and PCM conversion."""

import io
import struct

import numpy as np
import pytest

from chunkscribe.audio import (
    PCMWindowReader,
    float32_to_int16,
    float32_to_pcm16_bytes,
    int16_to_float32,
    pcm16_bytes_to_float32,
)


def pcm(n_samples: int, value: int = 1000) -> bytes:
    return np.full(n_samples, value, dtype="<i2").tobytes()


def wav_header(n_data_bytes: int, sample_rate: int = 16000, channels: int = 1, extra_chunk: bytes = b"") -> bytes:
    fmt = struct.pack("<HHIIHH", 1, channels, sample_rate, sample_rate * 2 * channels, 2 * channels, 16)
    body = b"WAVE" + b"fmt " + struct.pack("<I", len(fmt)) + fmt + extra_chunk
    body += b"data" + struct.pack("<I", n_data_bytes)
    return b"RIFF" + struct.pack("<I", len(body) + n_data_bytes) + body


class TrickleReader(io.RawIOBase):
    """Binary stream returning at most a few bytes per read, like a pipe."""

    def __init__(self, data: bytes, max_read: int = 7):
        self._data = data
        self._max_read = max_read

    def readable(self):
        return True

    def read(self, size=-1):
        if size < 0:
            size = len(self._data)
        size = min(size, self._max_read)
        chunk, self._data = self._data[:size], self._data[size:]
        return chunk


class TestConversion:
    """Test PCM scaling helpers."""

    def test_int16_to_float32_scale(self):
        """Test int16 samples scale into [-1, 1)."""
        samples = np.array([-32768, 0, 16384], dtype=np.int16)
        np.testing.assert_allclose(int16_to_float32(samples), [-1.0, 0.0, 0.5])

    def test_float32_to_int16_clips(self):
        """Test out-of-range floats clip to the int16 limits."""
        samples = np.array([-2.0, 0.5, 2.0], dtype=np.float32)
        np.testing.assert_array_equal(float32_to_int16(samples), [-32768, 16384, 32767])

    def test_bytes_drop_odd_trailing_byte(self):
        """Test a dangling odd byte is ignored when decoding."""
        data = np.array([16384, -16384], dtype="<i2").tobytes() + b"\x01"
        np.testing.assert_allclose(pcm16_bytes_to_float32(data), [0.5, -0.5])

    def test_float_bytes_encode(self):
        """Test floats encode as little-endian int16 bytes."""
        data = float32_to_pcm16_bytes(np.array([0.5], dtype=np.float32))
        assert data == struct.pack("<h", 16384)


class TestWindowing:
    """Test window boundaries and timing."""

    def test_window_size(self):
        """Test the window length in samples."""
        reader = PCMWindowReader(io.BytesIO(b""), window_ms=500, sample_rate=16000)
        assert reader.window_samples == 8000

    def test_exact_multiple_has_no_short_window(self):
        """Test 1 s of audio in 500 ms windows gives exactly two windows."""
        windows = list(PCMWindowReader(io.BytesIO(pcm(16000)), window_ms=500))
        assert [(w.start_ms, w.end_ms) for w in windows] == [(0, 500), (500, 1000)]
        assert [w.index for w in windows] == [0, 1]
        assert all(len(w.samples) == 8000 for w in windows)
        assert not windows[-1].is_last

    def test_short_last_window(self):
        """Test a trailing partial window reports its real duration."""
        windows = list(PCMWindowReader(io.BytesIO(pcm(8000 + 1600)), window_ms=500))
        assert len(windows) == 2
        assert windows[1].start_ms == 500
        assert windows[1].end_ms == 600
        assert windows[1].duration_ms == 100
        assert windows[1].is_last

    def test_bounds_follow_window_index(self):
        """Test bounds are multiples of window_ms when a window is not a whole number of samples."""
        # 11025 Hz * 10 ms = 110.25 samples, so each window holds 110
        reader = PCMWindowReader(io.BytesIO(pcm(110 * 3)), window_ms=10, sample_rate=11025)
        windows = list(reader)
        assert reader.window_samples == 110
        assert [(w.start_ms, w.end_ms) for w in windows] == [(0, 10), (10, 20), (20, 30)]

    def test_short_last_window_starts_on_index(self):
        """Test a short last window starts at index * window_ms and ends by its sample count."""
        windows = list(PCMWindowReader(io.BytesIO(pcm(110 * 2 + 55)), window_ms=10, sample_rate=11025))
        assert [(w.start_ms, w.end_ms) for w in windows] == [(0, 10), (10, 20), (20, 24)]
        assert windows[-1].is_last

    def test_empty_stream(self):
        """Test an empty stream yields no windows."""
        assert list(PCMWindowReader(io.BytesIO(b""))) == []

    def test_samples_are_scaled(self):
        """Test window samples are float32 in [-1, 1)."""
        window = next(iter(PCMWindowReader(io.BytesIO(pcm(8000, 16384)))))
        assert window.samples.dtype == np.float32
        np.testing.assert_allclose(window.samples, 0.5)

    def test_short_reads_are_retried(self):
        """Test a source returning a few bytes at a time still fills windows."""
        source = TrickleReader(pcm(16000))
        windows = list(PCMWindowReader(source, window_ms=500))
        assert [len(w.samples) for w in windows] == [8000, 8000]

    def test_trailing_odd_byte_dropped(self, caplog):
        """Test an odd trailing byte is dropped with a warning."""
        windows = list(PCMWindowReader(io.BytesIO(pcm(100) + b"\x00"), window_ms=500))
        assert len(windows[0].samples) == 100
        assert "odd byte" in caplog.text

    @pytest.mark.parametrize("window_ms, sample_rate", [(0, 16000), (500, 0)])
    def test_invalid_arguments(self, window_ms, sample_rate):
        """Test non-positive window length or sample rate is refused."""
        with pytest.raises(ValueError):
            PCMWindowReader(io.BytesIO(b""), window_ms=window_ms, sample_rate=sample_rate)


class TestWavHeader:
    """Test RIFF/WAVE header skipping."""

    def test_header_is_skipped(self):
        """Test a WAV header is not read as audio."""
        data = pcm(8000, 16384)
        windows = list(PCMWindowReader(io.BytesIO(wav_header(len(data)) + data)))
        assert len(windows) == 1
        assert len(windows[0].samples) == 8000
        np.testing.assert_allclose(windows[0].samples, 0.5)

    def test_extra_chunks_are_skipped(self):
        """Test chunks between fmt and data (e.g. LIST) are skipped too."""
        extra = b"LIST" + struct.pack("<I", 3) + b"abc\x00"
        data = pcm(4000)
        windows = list(PCMWindowReader(io.BytesIO(wav_header(len(data), extra_chunk=extra) + data)))
        assert len(windows[0].samples) == 4000

    def test_format_mismatch_warns(self, caplog):
        """Test an unexpected WAV format is logged and read anyway."""
        data = pcm(800)
        list(PCMWindowReader(io.BytesIO(wav_header(len(data), sample_rate=8000) + data)))
        assert "expected 1ch/16000Hz/16bit" in caplog.text

    def test_raw_pcm_keeps_leading_bytes(self):
        """Test raw PCM that is not a WAV file loses no samples to the header check."""
        windows = list(PCMWindowReader(io.BytesIO(pcm(10))))
        assert len(windows[0].samples) == 10
