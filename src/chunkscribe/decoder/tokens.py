"""Token set: the ordered output alphabet of the acoustic model."""

import logging
import os
from collections.abc import Iterable

from ..core.exceptions import InputFileError, TokenFileError

logger = logging.getLogger(__name__)


class TokenNotFoundError(KeyError):
    """Raised when a token is not part of the token set."""


class TokenSet:
    """Immutable ordered list of distinct tokens; a token's id is its position."""

    def __init__(self, tokens: Iterable[str]):
        self._tokens = tuple(tokens)
        self._index: dict[str, int] = {}
        for position, token in enumerate(self._tokens):
            if token in self._index:
                raise TokenFileError(
                    f"duplicate token {token!r} at positions {self._index[token]} and {position}"
                )
            self._index[token] = position

    def __len__(self) -> int:
        return len(self._tokens)

    def __iter__(self):
        return iter(self._tokens)

    def __getitem__(self, token_id: int) -> str:
        return self._tokens[token_id]

    def __contains__(self, token: object) -> bool:
        return token in self._index

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TokenSet):
            return NotImplemented
        return self._tokens == other._tokens

    def __hash__(self) -> int:
        return hash(self._tokens)

    def __repr__(self) -> str:
        return f"TokenSet({len(self)} tokens)"

    def index(self, token: str) -> int:
        """Return the id of token."""
        try:
            return self._index[token]
        except KeyError:
            raise TokenNotFoundError(token) from None

    def get(self, token: str, default: int | None = None) -> int | None:
        return self._index.get(token, default)

    @property
    def tokens(self) -> tuple[str, ...]:
        return self._tokens


def parse_tokens(lines: Iterable[str], source: str = "<tokens>") -> TokenSet:
    """Build a token set from lines, skipping lines that are empty.

    Only the line terminator is removed: a token may contain or be made of
    other whitespace characters.
    """
    tokens = [line.rstrip("\r\n") for line in lines]
    try:
        return TokenSet(token for token in tokens if token)
    except TokenFileError as e:
        raise TokenFileError(f"{source}: {e}") from e


def load_tokens(path: str | os.PathLike) -> TokenSet:
    """Read a token file, one token per line."""
    try:
        with open(path, encoding="utf-8") as f:
            token_set = parse_tokens(f, str(path))
    except OSError as e:
        raise InputFileError(str(path), "tokens file", e) from e
    except UnicodeDecodeError as e:
        raise TokenFileError(f"{path}: not valid UTF-8: {e}") from e

    if len(token_set) == 0:
        raise TokenFileError(f"{path}: no tokens")
    logger.debug(f"Read {len(token_set)} tokens from {path}")
    return token_set
