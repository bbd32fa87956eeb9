"""Frame-wise streaming layers used to build acoustic models.

Every layer consumes and produces (frames, dims) float32 arrays. Input
dimensions are checked on each forward call, never at construction, so a
mismatched chain fails on first use.
"""

from typing import Any

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from ..core.exceptions import ModuleShapeError


def _as_frames(x: np.ndarray, dims: int | None, layer: str) -> np.ndarray:
    x = np.asarray(x, dtype=np.float32)
    if x.ndim != 2 or (dims is not None and x.shape[1] != dims):
        expected = f"(frames, {dims})" if dims is not None else "(frames, dims)"
        raise ModuleShapeError(f"{layer} expects {expected} input, got shape {x.shape}")
    return x


class Layer:
    """Base for serializable layers.

    Subclasses set `kind` (the name stored in module files) and override
    get_config()/parameters() when they carry settings or weights.
    """

    kind = ""

    def get_config(self) -> dict[str, Any]:
        return {}

    def parameters(self) -> dict[str, np.ndarray]:
        return {}

    @classmethod
    def from_config(cls, config: dict[str, Any], params: dict[str, np.ndarray]) -> "Layer":
        return cls(**config, **params)

    def forward(self, chunk: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def finish(self) -> np.ndarray | None:
        return None

    def reset(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.get_config()})"


class Linear(Layer):
    """Affine projection applied to every frame."""

    kind = "linear"

    def __init__(self, weight: np.ndarray, bias: np.ndarray | None = None):
        self.weight = np.asarray(weight, dtype=np.float32)
        if self.weight.ndim != 2:
            raise ModuleShapeError(f"Linear weight must be 2-D (out, in), got {self.weight.shape}")
        out_features = self.weight.shape[0]
        self.bias = (
            np.zeros(out_features, dtype=np.float32) if bias is None else np.asarray(bias, dtype=np.float32)
        )

    @property
    def in_features(self) -> int:
        return int(self.weight.shape[1])

    @property
    def out_features(self) -> int:
        return int(self.weight.shape[0])

    def parameters(self) -> dict[str, np.ndarray]:
        return {"weight": self.weight, "bias": self.bias}

    def forward(self, chunk: np.ndarray) -> np.ndarray:
        x = _as_frames(chunk, self.in_features, "Linear")
        return (x @ self.weight.T + self.bias).astype(np.float32)


class Conv1d(Layer):
    """Causal 1-D convolution over time.

    The last kernel_size - 1 input frames are kept between calls, and the
    stream starts from zero history, so every input frame yields exactly one
    output frame.
    """

    kind = "conv1d"

    def __init__(self, weight: np.ndarray, bias: np.ndarray | None = None):
        self.weight = np.asarray(weight, dtype=np.float32)
        if self.weight.ndim != 3:
            raise ModuleShapeError(
                f"Conv1d weight must be 3-D (out, in, kernel), got {self.weight.shape}"
            )
        self.bias = (
            np.zeros(self.weight.shape[0], dtype=np.float32)
            if bias is None
            else np.asarray(bias, dtype=np.float32)
        )
        self._history = self._empty_history()

    @property
    def in_channels(self) -> int:
        return int(self.weight.shape[1])

    @property
    def out_channels(self) -> int:
        return int(self.weight.shape[0])

    @property
    def kernel_size(self) -> int:
        return int(self.weight.shape[2])

    def _empty_history(self) -> np.ndarray:
        return np.zeros((self.kernel_size - 1, self.in_channels), dtype=np.float32)

    def parameters(self) -> dict[str, np.ndarray]:
        return {"weight": self.weight, "bias": self.bias}

    def forward(self, chunk: np.ndarray) -> np.ndarray:
        x = _as_frames(chunk, self.in_channels, "Conv1d")
        if x.shape[0] == 0:
            return np.zeros((0, self.out_channels), dtype=np.float32)

        padded = np.concatenate([self._history, x], axis=0)
        # (frames, in, kernel)
        windows = sliding_window_view(padded, self.kernel_size, axis=0)
        out = np.einsum("tik,oik->to", windows, self.weight) + self.bias

        keep = self.kernel_size - 1
        self._history = padded[len(padded) - keep :].copy() if keep else self._empty_history()
        return out.astype(np.float32)

    def reset(self) -> None:
        self._history = self._empty_history()


class Normalize(Layer):
    """Per-dimension mean/variance normalization."""

    kind = "normalize"

    def __init__(self, mean: np.ndarray, std: np.ndarray):
        self.mean = np.asarray(mean, dtype=np.float32)
        self.std = np.asarray(std, dtype=np.float32)
        if self.mean.shape != self.std.shape or self.mean.ndim != 1:
            raise ModuleShapeError(
                f"Normalize mean/std must be matching 1-D arrays, got {self.mean.shape} and {self.std.shape}"
            )

    def parameters(self) -> dict[str, np.ndarray]:
        return {"mean": self.mean, "std": self.std}

    def forward(self, chunk: np.ndarray) -> np.ndarray:
        x = _as_frames(chunk, self.mean.shape[0], "Normalize")
        return ((x - self.mean) / self.std).astype(np.float32)


class ReLU(Layer):
    kind = "relu"

    def forward(self, chunk: np.ndarray) -> np.ndarray:
        x = _as_frames(chunk, None, "ReLU")
        return np.maximum(x, 0.0)


class LogSoftmax(Layer):
    """Normalize each frame into log-probabilities."""

    kind = "log_softmax"

    def forward(self, chunk: np.ndarray) -> np.ndarray:
        x = _as_frames(chunk, None, "LogSoftmax")
        if x.shape[0] == 0:
            return x
        shifted = x - x.max(axis=1, keepdims=True)
        return (shifted - np.log(np.exp(shifted).sum(axis=1, keepdims=True))).astype(np.float32)
