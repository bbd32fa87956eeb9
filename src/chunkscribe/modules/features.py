"""Streaming feature extraction from raw samples.

Provides:
- Framing: overlapping raw sample frames
- LogMelFeatures: log mel filterbank energies per frame
"""

import math
from typing import Any

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from ..core.exceptions import ModuleShapeError
from .layers import Layer


def mel_filters(
    sample_rate: int,
    n_fft: int,
    n_mels: int,
    f_min: float = 0.0,
    f_max: float | None = None,
) -> np.ndarray:
    """Triangular HTK-scale mel filterbank of shape (n_fft // 2 + 1, n_mels)."""

    def hz_to_mel(freq):
        return 2595.0 * np.log10(1.0 + np.asarray(freq) / 700.0)

    def mel_to_hz(mels):
        return 700.0 * (10.0 ** (np.asarray(mels) / 2595.0) - 1.0)

    f_max = f_max or sample_rate / 2

    n_freqs = n_fft // 2 + 1
    all_freqs = np.linspace(0, sample_rate // 2, n_freqs)

    m_pts = np.linspace(hz_to_mel(f_min), hz_to_mel(f_max), n_mels + 2)
    f_pts = mel_to_hz(m_pts)

    f_diff = f_pts[1:] - f_pts[:-1]
    slopes = f_pts[None, :] - all_freqs[:, None]

    down_slopes = (-slopes[:, :-2]) / f_diff[:-1]
    up_slopes = slopes[:, 2:] / f_diff[1:]
    return np.maximum(0.0, np.minimum(down_slopes, up_slopes)).astype(np.float32)


class Framing(Layer):
    """Cut a sample stream into (possibly overlapping) frames.

    Samples that do not fill a frame yet are buffered until the next call.
    finish() zero-pads whatever audio never made it into a frame.
    """

    kind = "framing"

    def __init__(self, frame_length: int = 400, frame_shift: int = 160):
        if frame_length <= 0 or frame_shift <= 0 or frame_shift > frame_length:
            raise ValueError(
                f"need 0 < frame_shift <= frame_length, got shift={frame_shift} length={frame_length}"
            )
        self.frame_length = int(frame_length)
        self.frame_shift = int(frame_shift)
        self._pending = np.zeros(0, dtype=np.float32)
        self._frames_emitted = 0

    def get_config(self) -> dict[str, Any]:
        return {"frame_length": self.frame_length, "frame_shift": self.frame_shift}

    @property
    def output_dims(self) -> int:
        return self.frame_length

    def _as_samples(self, chunk: np.ndarray) -> np.ndarray:
        samples = np.asarray(chunk, dtype=np.float32)
        if samples.ndim == 2 and samples.shape[1] == 1:
            samples = samples[:, 0]
        if samples.ndim != 1:
            raise ModuleShapeError(f"{type(self).__name__} expects 1-D samples, got shape {samples.shape}")
        return samples

    def _frames(self, chunk: np.ndarray) -> np.ndarray:
        buffer = np.concatenate([self._pending, self._as_samples(chunk)])
        if len(buffer) < self.frame_length:
            self._pending = buffer
            return np.zeros((0, self.frame_length), dtype=np.float32)

        n_frames = 1 + (len(buffer) - self.frame_length) // self.frame_shift
        frames = sliding_window_view(buffer, self.frame_length)[:: self.frame_shift][:n_frames]
        self._pending = buffer[n_frames * self.frame_shift :]
        self._frames_emitted += n_frames
        return np.ascontiguousarray(frames, dtype=np.float32)

    def _flush_frames(self) -> np.ndarray | None:
        overlap = self.frame_length - self.frame_shift
        has_new_audio = len(self._pending) > overlap or (self._frames_emitted == 0 and len(self._pending) > 0)
        if not has_new_audio:
            self._pending = np.zeros(0, dtype=np.float32)
            return None

        frame = np.zeros((1, self.frame_length), dtype=np.float32)
        frame[0, : len(self._pending)] = self._pending
        self._pending = np.zeros(0, dtype=np.float32)
        self._frames_emitted += 1
        return frame

    def forward(self, chunk: np.ndarray) -> np.ndarray:
        return self._frames(chunk)

    def finish(self) -> np.ndarray | None:
        return self._flush_frames()

    def reset(self) -> None:
        self._pending = np.zeros(0, dtype=np.float32)
        self._frames_emitted = 0


class LogMelFeatures(Framing):
    """Log mel filterbank features, one vector per frame.

    Frames are Hamming-windowed, transformed with a real FFT of n_fft points
    (next power of two above frame_length by default), projected onto an
    HTK mel filterbank and log-compressed with a floor.
    """

    kind = "log_mel"

    def __init__(
        self,
        sample_rate: int = 16000,
        frame_length: int = 400,
        frame_shift: int = 160,
        n_mels: int = 40,
        n_fft: int | None = None,
        f_min: float = 0.0,
        f_max: float | None = None,
        log_floor: float = 1e-10,
    ):
        super().__init__(frame_length=frame_length, frame_shift=frame_shift)
        self.sample_rate = int(sample_rate)
        self.n_mels = int(n_mels)
        self.n_fft = int(n_fft) if n_fft else 2 ** math.ceil(math.log2(self.frame_length))
        self.f_min = float(f_min)
        self.f_max = None if f_max is None else float(f_max)
        self.log_floor = float(log_floor)

        self._window = np.hamming(self.frame_length).astype(np.float32)
        self._filterbank = mel_filters(self.sample_rate, self.n_fft, self.n_mels, self.f_min, self.f_max)

    def get_config(self) -> dict[str, Any]:
        config = super().get_config()
        config.update(
            sample_rate=self.sample_rate,
            n_mels=self.n_mels,
            n_fft=self.n_fft,
            f_min=self.f_min,
            f_max=self.f_max,
            log_floor=self.log_floor,
        )
        return config

    @property
    def output_dims(self) -> int:
        return self.n_mels

    def _features(self, frames: np.ndarray | None) -> np.ndarray | None:
        if frames is None:
            return None
        if frames.shape[0] == 0:
            return np.zeros((0, self.n_mels), dtype=np.float32)
        spectrum = np.fft.rfft(frames * self._window, n=self.n_fft, axis=1)
        power = np.abs(spectrum) ** 2
        mel = power @ self._filterbank
        return np.log(np.maximum(mel, self.log_floor)).astype(np.float32)

    def forward(self, chunk: np.ndarray) -> np.ndarray:
        return self._features(self._frames(chunk))

    def finish(self) -> np.ndarray | None:
        return self._features(self._flush_frames())
