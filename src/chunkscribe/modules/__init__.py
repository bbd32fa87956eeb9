"""Streaming inference modules: protocol, layers, composition and module files."""

from .features import Framing, LogMelFeatures, mel_filters
from .layers import Conv1d, Layer, Linear, LogSoftmax, Normalize, ReLU
from .protocol import StreamingModule
from .sequential import Sequential
from .serialization import LAYER_KINDS, load_module, save_module

__all__ = [
    "LAYER_KINDS",
    "Conv1d",
    "Framing",
    "Layer",
    "Linear",
    "LogMelFeatures",
    "LogSoftmax",
    "Normalize",
    "ReLU",
    "Sequential",
    "StreamingModule",
    "load_module",
    "mel_filters",
    "save_module",
]
