"""Audio conversion helpers for PCM scaling."""

from typing import cast

import numpy as np

BYTES_PER_SAMPLE = 2


def int16_to_float32(audio: np.ndarray) -> np.ndarray:
    """Convert int16 PCM to float32 in [-1.0, 1.0]."""
    if audio.dtype == np.int16:
        return audio.astype(np.float32) / 32768.0
    return audio.astype(np.float32)


def float32_to_int16(audio: np.ndarray) -> np.ndarray:
    """Convert float PCM in [-1.0, 1.0] to int16."""
    if audio.dtype == np.int16:
        return audio
    audio_f32 = audio.astype(np.float32)
    return cast("np.ndarray", np.clip(audio_f32 * 32768.0, -32768, 32767).astype(np.int16))


def pcm16_bytes_to_float32(data: bytes) -> np.ndarray:
    """Decode little-endian 16-bit PCM bytes to float32 samples.

    A trailing odd byte (half a sample) is ignored.
    """
    usable = len(data) - (len(data) % BYTES_PER_SAMPLE)
    samples = np.frombuffer(data[:usable], dtype="<i2")
    return int16_to_float32(samples.astype(np.int16))


def float32_to_pcm16_bytes(audio: np.ndarray) -> bytes:
    """Encode float samples as little-endian 16-bit PCM bytes."""
    return float32_to_int16(np.asarray(audio)).astype("<i2").tobytes()
