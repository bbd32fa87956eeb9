"""Composition of streaming modules into one causal chain."""

import logging

import numpy as np

from ..core.exceptions import ModuleShapeError
from .protocol import StreamingModule

logger = logging.getLogger(__name__)


class Sequential:
    """Ordered chain of streaming modules behaving as a single module.

    A forward call threads the chunk through every sub-module in order; each
    sub-module keeps its own state between calls. Nothing is checked when
    modules are appended: a sub-module rejecting its predecessor's output
    shape surfaces as a ModuleShapeError on the first forward call.

    Example:
        dnn = Sequential(name="dnn")
        dnn.append(feature_module).append(acoustic_module)

        emissions = dnn.forward(samples)  # (frames, n_tokens)
        tail = dnn.finish()               # at end of stream

    """

    def __init__(self, modules: list[StreamingModule] | None = None, name: str = "sequential"):
        self.name = name
        self.modules: list[StreamingModule] = list(modules or [])

    def append(self, module: StreamingModule) -> "Sequential":
        """Add a module at the end of the chain."""
        self.modules.append(module)
        return self

    # Alias matching the usual container vocabulary
    add = append

    def __len__(self) -> int:
        return len(self.modules)

    def __iter__(self):
        return iter(self.modules)

    def __getitem__(self, index: int) -> StreamingModule:
        return self.modules[index]

    def _describe(self, index: int) -> str:
        module = self.modules[index]
        label = getattr(module, "name", None) or type(module).__name__
        return f"{self.name}[{index}] ({label})"

    def _forward_from(self, start: int, chunk: np.ndarray) -> np.ndarray:
        for index in range(start, len(self.modules)):
            try:
                chunk = self.modules[index].forward(chunk)
            except ModuleShapeError as e:
                raise ModuleShapeError(f"{self._describe(index)}: {e}") from e
        return chunk

    def forward(self, chunk: np.ndarray) -> np.ndarray:
        """Pass a chunk through every module in order."""
        return self._forward_from(0, chunk)

    def finish(self) -> np.ndarray | None:
        """Flush every module in order.

        Output flushed by module i is forwarded through modules i+1..n before
        those are flushed in turn, so the tail keeps its time order.
        """
        output: np.ndarray | None = None
        for index, module in enumerate(self.modules):
            if output is not None:
                try:
                    output = module.forward(output)
                except ModuleShapeError as e:
                    raise ModuleShapeError(f"{self._describe(index)}: {e}") from e
            output = _concat(output, module.finish())
        return output

    def reset(self) -> None:
        for module in self.modules:
            module.reset()
        logger.debug(f"{self.name}: reset {len(self.modules)} modules")


def _concat(first: np.ndarray | None, second: np.ndarray | None) -> np.ndarray | None:
    if first is None or len(first) == 0:
        return second if second is not None else first
    if second is None or len(second) == 0:
        return first
    return np.concatenate([first, second], axis=0)
