"""chunkscribe - streaming speech recognition, one transcript line per audio window."""

from importlib import import_module, metadata
from pathlib import Path
import tomllib
from typing import TYPE_CHECKING


def _get_version() -> str:
    try:
        return metadata.version("chunkscribe")
    except metadata.PackageNotFoundError:
        pass

    try:
        pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
        with open(pyproject_path, "rb") as f:
            data = tomllib.load(f)
        return str(data["project"]["version"])
    except (OSError, KeyError, tomllib.TOMLDecodeError):
        return "unknown"


__version__ = _get_version()

if TYPE_CHECKING:
    from .core.config import ConfigLoader, get_config
    from .core.run_config import TranscribeConfig
    from .decoder import DecoderFactory, DecoderOptions, DecoderSession
    from .modules import Sequential, StreamingModule, load_module, save_module
    from .transcription import StreamingTranscriber, TranscriptSegment, build_transcriber

_LAZY_EXPORTS = {
    "ConfigLoader": (".core.config", "ConfigLoader"),
    "get_config": (".core.config", "get_config"),
    "TranscribeConfig": (".core.run_config", "TranscribeConfig"),
    "DecoderFactory": (".decoder", "DecoderFactory"),
    "DecoderOptions": (".decoder", "DecoderOptions"),
    "DecoderSession": (".decoder", "DecoderSession"),
    "Sequential": (".modules", "Sequential"),
    "StreamingModule": (".modules", "StreamingModule"),
    "load_module": (".modules", "load_module"),
    "save_module": (".modules", "save_module"),
    "StreamingTranscriber": (".transcription", "StreamingTranscriber"),
    "TranscriptSegment": (".transcription", "TranscriptSegment"),
    "build_transcriber": (".transcription", "build_transcriber"),
}


def __getattr__(name):
    if name in {"audio", "core", "decoder", "modules", "transcription"}:
        module = import_module(f".{name}", __name__)
        globals()[name] = module
        return module

    if name not in _LAZY_EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module_name, attr_name = _LAZY_EXPORTS[name]
    module = import_module(module_name, __name__)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


__all__ = list(_LAZY_EXPORTS)
