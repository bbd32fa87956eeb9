"""Lexicon and the search trie built from it.

The lexicon file has one spelling per line: a word followed by the tokens
that spell it, separated by whitespace. A word may appear on several lines.

    hello  h e l l o
    hello  h e l o
"""

import logging
import math
import os
from collections.abc import Iterable, Mapping
from enum import Enum

import numpy as np

from ..core.exceptions import ConfigurationError, InputFileError, LexiconError
from .tokens import TokenSet

logger = logging.getLogger(__name__)


class SmearingMode(Enum):
    """How unigram LM scores are propagated up the trie."""

    NONE = "none"
    MAX = "max"
    LOGADD = "logadd"

    @classmethod
    def parse(cls, value: "str | SmearingMode") -> "SmearingMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(mode.value for mode in cls)
            raise ConfigurationError(f"unknown smearing mode {value!r} (expected one of: {choices})") from None


class Lexicon:
    """Immutable mapping of word to its spellings, each a tuple of token ids."""

    def __init__(self, entries: Mapping[str, Iterable[Iterable[int]]]):
        self._entries: dict[str, tuple[tuple[int, ...], ...]] = {}
        for word, spellings in entries.items():
            spellings = tuple(tuple(int(t) for t in spelling) for spelling in spellings)
            if not spellings or any(len(spelling) == 0 for spelling in spellings):
                raise LexiconError(f"word {word!r} has an empty spelling")
            self._entries[word] = spellings

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def __contains__(self, word: object) -> bool:
        return word in self._entries

    def __getitem__(self, word: str) -> tuple[tuple[int, ...], ...]:
        return self._entries[word]

    def items(self):
        return self._entries.items()

    @property
    def words(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def validate(self, token_count: int) -> None:
        """Check every spelling references an existing token id."""
        for word, spellings in self._entries.items():
            for spelling in spellings:
                for token_id in spelling:
                    if not 0 <= token_id < token_count:
                        raise LexiconError(
                            f"word {word!r} references token id {token_id}, "
                            f"token set has {token_count} tokens"
                        )


def parse_lexicon(lines: Iterable[str], tokens: TokenSet, source: str = "<lexicon>") -> Lexicon:
    entries: dict[str, list[tuple[int, ...]]] = {}
    for line_number, line in enumerate(lines, start=1):
        fields = line.split()
        if not fields:
            continue
        word, spelling = fields[0], fields[1:]
        if not spelling:
            raise LexiconError(f"{source}:{line_number}: word {word!r} has no spelling")

        token_ids = []
        for token in spelling:
            token_id = tokens.get(token)
            if token_id is None:
                raise LexiconError(f"{source}:{line_number}: unknown token {token!r} in spelling of {word!r}")
            token_ids.append(token_id)

        known = entries.setdefault(word, [])
        if tuple(token_ids) not in known:
            known.append(tuple(token_ids))
    return Lexicon(entries)


def load_lexicon(path: str | os.PathLike, tokens: TokenSet) -> Lexicon:
    """Read a lexicon file, resolving every spelling against tokens."""
    try:
        with open(path, encoding="utf-8") as f:
            lexicon = parse_lexicon(f, tokens, str(path))
    except OSError as e:
        raise InputFileError(str(path), "lexicon file", e) from e
    except UnicodeDecodeError as e:
        raise LexiconError(f"{path}: not valid UTF-8: {e}") from e

    logger.debug(f"Read {len(lexicon)} words from {path}")
    return lexicon


class TrieNode:
    """One trie position: the tokens spelled so far lead here."""

    __slots__ = ("token_id", "children", "labels", "max_score")

    def __init__(self, token_id: int | None = None):
        self.token_id = token_id
        self.children: dict[int, TrieNode] = {}
        self.labels: list[str] = []
        self.max_score = 0.0

    def __repr__(self) -> str:
        return f"TrieNode(token_id={self.token_id}, children={len(self.children)}, labels={self.labels})"


class LexiconTrie:
    """Prefix tree over token-id spellings with smeared LM look-ahead scores."""

    def __init__(self):
        self.root = TrieNode()

    def insert(self, spelling: Iterable[int], word: str) -> TrieNode:
        node = self.root
        for token_id in spelling:
            node = node.children.setdefault(token_id, TrieNode(token_id))
        if word not in node.labels:
            node.labels.append(word)
        return node

    def search(self, spelling: Iterable[int]) -> TrieNode | None:
        node = self.root
        for token_id in spelling:
            node = node.children.get(token_id)
            if node is None:
                return None
        return node

    @classmethod
    def from_lexicon(cls, lexicon: Lexicon) -> "LexiconTrie":
        trie = cls()
        for word, spellings in lexicon.items():
            for spelling in spellings:
                trie.insert(spelling, word)
        return trie

    def smear(self, word_scores: Mapping[str, float], mode: SmearingMode) -> None:
        """Give every node the best (MAX) or log-summed (LOGADD) score below it.

        With NONE every node scores 0.
        """
        if mode is SmearingMode.NONE:
            for node in self._walk():
                node.max_score = 0.0
            return

        combine = max if mode is SmearingMode.MAX else np.logaddexp
        # Children are visited before their parent.
        for node in reversed(list(self._walk())):
            score = -math.inf
            for word in node.labels:
                score = combine(score, word_scores[word])
            for child in node.children.values():
                score = combine(score, child.max_score)
            # Only an empty trie's root has nothing below it.
            node.max_score = float(score) if score > -math.inf else 0.0

    def _walk(self):
        stack = [self.root]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(node.children.values())

    def __len__(self) -> int:
        return sum(1 for _ in self._walk())
