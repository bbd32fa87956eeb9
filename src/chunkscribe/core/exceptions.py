"""Exception hierarchy for chunkscribe.

Every failure the pipeline can raise derives from ChunkscribeError so the CLI
can turn it into a non-zero exit. There is no partial-result recovery: any of
these aborts the run.
"""


class ChunkscribeError(Exception):
    """Base exception for chunkscribe errors."""


class InputFileError(ChunkscribeError):
    """Raised when a required file cannot be opened."""

    def __init__(self, path: str, description: str = "file", cause: Exception | None = None):
        self.path = path
        self.description = description
        self.cause = cause
        message = f"failed to open {description}={path} for reading"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class FormatError(ChunkscribeError):
    """Base exception for malformed input data."""


class ConfigurationError(FormatError):
    """Raised when a configuration object is missing fields or mistyped."""


class TokenFileError(FormatError):
    """Raised when a token file is malformed."""


class LexiconError(FormatError):
    """Raised when the lexicon is malformed or references unknown tokens."""


class LanguageModelError(FormatError):
    """Raised when a language model file cannot be parsed."""


class ModuleLoadError(FormatError):
    """Raised when serialized streaming module data is absent or corrupt."""


class ShapeError(ChunkscribeError):
    """Base exception for tensor shape mismatches."""


class ModuleShapeError(ShapeError):
    """Raised when a streaming module receives input of the wrong shape."""


class EmissionShapeError(ShapeError):
    """Raised when emission frames do not match the token set size."""


class DecoderStateError(ChunkscribeError):
    """Raised when a decoder session is used after it was finalized."""
