"""Audio input APIs: PCM decoding and fixed-window reading."""

from .conversion import (
    float32_to_int16,
    float32_to_pcm16_bytes,
    int16_to_float32,
    pcm16_bytes_to_float32,
)
from .reader import AudioWindow, PCMWindowReader

__all__ = [
    "AudioWindow",
    "PCMWindowReader",
    "float32_to_int16",
    "float32_to_pcm16_bytes",
    "int16_to_float32",
    "pcm16_bytes_to_float32",
]
