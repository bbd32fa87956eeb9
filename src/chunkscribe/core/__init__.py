"""Core package exports."""

from .config import ConfigLoader, get_config
from .exceptions import ChunkscribeError
from .logging import setup_logging
from .run_config import TranscribeConfig
from .timing import log_elapsed

__all__ = [
    "ChunkscribeError",
    "ConfigLoader",
    "TranscribeConfig",
    "get_config",
    "log_elapsed",
    "setup_logging",
]
