"""Module files: numpy .npz archives holding a chain of layers.

An archive stores a JSON manifest under ``__manifest__``:

    {"format_version": 1, "modules": [{"kind": "linear", "config": {}}, ...]}

and each layer's parameter arrays under ``"<position>.<name>"``.
"""

import json
import logging
import os
import zipfile
from pathlib import Path

import numpy as np

from ..core.exceptions import InputFileError, ModuleLoadError
from .features import Framing, LogMelFeatures
from .layers import Conv1d, Layer, Linear, LogSoftmax, Normalize, ReLU
from .sequential import Sequential

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
MANIFEST_KEY = "__manifest__"

LAYER_KINDS: dict[str, type[Layer]] = {
    cls.kind: cls for cls in (Framing, LogMelFeatures, Normalize, Linear, Conv1d, ReLU, LogSoftmax)
}


def _flatten(module) -> list[Layer]:
    if isinstance(module, Sequential):
        layers: list[Layer] = []
        for sub in module:
            layers.extend(_flatten(sub))
        return layers
    if isinstance(module, Layer) and module.kind in LAYER_KINDS:
        return [module]
    raise ModuleLoadError(f"cannot serialize module of type {type(module).__name__}")


def save_module(module, path: str | os.PathLike) -> None:
    """Write a layer or a (possibly nested) Sequential of layers to path."""
    layers = _flatten(module)
    manifest = {
        "format_version": FORMAT_VERSION,
        "modules": [{"kind": layer.kind, "config": layer.get_config()} for layer in layers],
    }
    arrays = {MANIFEST_KEY: np.array(json.dumps(manifest))}
    for position, layer in enumerate(layers):
        for name, value in layer.parameters().items():
            arrays[f"{position}.{name}"] = np.asarray(value)

    with open(path, "wb") as f:
        np.savez(f, **arrays)
    logger.debug(f"Saved {len(layers)} layers to {path}")


def _read_manifest(archive, path) -> dict:
    if MANIFEST_KEY not in archive.files:
        raise ModuleLoadError(f"{path}: missing {MANIFEST_KEY}")
    try:
        manifest = json.loads(str(archive[MANIFEST_KEY]))
    except (ValueError, TypeError) as e:
        raise ModuleLoadError(f"{path}: invalid manifest: {e}") from e

    if not isinstance(manifest, dict) or not isinstance(manifest.get("modules"), list):
        raise ModuleLoadError(f"{path}: manifest must be an object with a 'modules' list")
    version = manifest.get("format_version")
    if version != FORMAT_VERSION:
        raise ModuleLoadError(f"{path}: unsupported format_version {version!r}")
    return manifest


def load_module(path: str | os.PathLike) -> Sequential:
    """Load a module file as a Sequential named after the file."""
    if not os.path.isfile(path):
        raise InputFileError(str(path), "module file")

    try:
        archive = np.load(path, allow_pickle=False)
    except OSError as e:
        raise InputFileError(str(path), "module file", e) from e
    except (ValueError, zipfile.BadZipFile) as e:
        raise ModuleLoadError(f"{path}: not a module archive: {e}") from e
    if not hasattr(archive, "files"):
        raise ModuleLoadError(f"{path}: not a module archive: expected .npz, got a single array")

    with archive:
        manifest = _read_manifest(archive, path)
        module = Sequential(name=Path(path).stem)
        for position, entry in enumerate(manifest["modules"]):
            if not isinstance(entry, dict):
                raise ModuleLoadError(f"{path}: module entry {position} is not an object")
            kind = entry.get("kind")
            layer_cls = LAYER_KINDS.get(kind)
            if layer_cls is None:
                raise ModuleLoadError(f"{path}: unknown module kind {kind!r} at position {position}")

            prefix = f"{position}."
            params = {
                key[len(prefix) :]: archive[key] for key in archive.files if key.startswith(prefix)
            }
            try:
                layer = layer_cls.from_config(entry.get("config") or {}, params)
            except (TypeError, ValueError) as e:
                raise ModuleLoadError(f"{path}: cannot build {kind} at position {position}: {e}") from e
            module.append(layer)

    logger.debug(f"Loaded {len(module)} layers from {path}")
    return module
