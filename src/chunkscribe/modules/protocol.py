"""Protocol definition for streaming modules.

Uses Protocol-based typing for flexibility - a module does not need to inherit
from a base class, it only has to implement the stateful-transform methods.
"""

from typing import Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class StreamingModule(Protocol):
    """A stateful transform from input chunks to output chunks.

    Implementations keep whatever history they need (convolution context,
    partially filled frames) between calls, so feeding a signal in one piece
    or in many chunks produces the same output.

    All modules must implement:
    - forward(): consume one chunk and return the output it makes available
    - finish(): flush buffered input at end of stream
    - reset(): drop all state so a new stream can start
    """

    def forward(self, chunk: np.ndarray) -> np.ndarray:
        """Consume one input chunk.

        Args:
            chunk: 1-D samples for feature modules, (frames, dims) otherwise

        Returns:
            Output produced by this chunk, (frames, dims)
        """
        ...

    def finish(self) -> np.ndarray | None:
        """Flush buffered input at end of stream.

        Returns:
            Remaining output, or None when nothing was buffered
        """
        ...

    def reset(self) -> None:
        """Forget all streaming state."""
        ...
