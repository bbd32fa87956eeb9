"""Word-level language models used by the decoder.

Provides:
- LanguageModel: Protocol every model implements
- ZeroLanguageModel: Scores every word 0
- ArpaLanguageModel: Back-off n-gram model read from an ARPA file

States are hashable and immutable, so hypotheses can share them and the
decoder can merge hypotheses on them. Scores are log10 probabilities.
"""

import logging
import os
import re
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from ..core.exceptions import InputFileError, LanguageModelError

logger = logging.getLogger(__name__)

SENTENCE_START = "<s>"
SENTENCE_END = "</s>"
UNKNOWN_WORD = "<unk>"
UNKNOWN_WORD_SCORE = -100.0

LMState = tuple[str, ...]


@runtime_checkable
class LanguageModel(Protocol):
    """Stateless scorer: all history lives in the returned states."""

    def start(self, context: Iterable[str] = ()) -> LMState:
        """State after a sentence start followed by the context words."""
        ...

    def score(self, state: LMState, word: str) -> tuple[LMState, float]:
        """Score word after state, returning the successor state."""
        ...

    def finish(self, state: LMState) -> tuple[LMState, float]:
        """Score the end of sentence after state."""
        ...


class ZeroLanguageModel:
    """Language model that has no opinion: one state, every score 0."""

    order = 0

    def start(self, context: Iterable[str] = ()) -> LMState:
        return ()

    def score(self, state: LMState, word: str) -> tuple[LMState, float]:
        return state, 0.0

    def finish(self, state: LMState) -> tuple[LMState, float]:
        return state, 0.0


_SECTION_RE = re.compile(r"^\\(\d+)-grams:$")
_COUNT_RE = re.compile(r"^ngram\s+(\d+)\s*=\s*(\d+)$")


class ArpaLanguageModel:
    """Back-off n-gram model.

    p(w | h) is the stored n-gram probability for the longest history suffix
    that has one, plus the back-off weights of every longer history skipped
    on the way. Words missing from the unigrams are scored as <unk> when the
    model has it, else with a fixed -100.
    """

    def __init__(
        self,
        log_probs: dict[LMState, float],
        backoffs: dict[LMState, float] | None = None,
        order: int | None = None,
    ):
        self._log_probs = dict(log_probs)
        self._backoffs = dict(backoffs or {})
        self.order = order or max((len(ngram) for ngram in self._log_probs), default=1)
        self._has_unk = (UNKNOWN_WORD,) in self._log_probs

    @property
    def vocabulary(self) -> set[str]:
        return {ngram[0] for ngram in self._log_probs if len(ngram) == 1}

    def _trim(self, history: LMState) -> LMState:
        history = history[-(self.order - 1) :] if self.order > 1 else ()
        # Keep only the longest suffix the model knows as an n-gram.
        while history and history not in self._log_probs:
            history = history[1:]
        return history

    def log_prob(self, history: LMState, word: str) -> float:
        if (word,) not in self._log_probs:
            if not self._has_unk:
                return UNKNOWN_WORD_SCORE
            word = UNKNOWN_WORD

        backoff = 0.0
        for start in range(len(history) + 1):
            context = history[start:]
            ngram = context + (word,)
            if ngram in self._log_probs:
                return self._log_probs[ngram] + backoff
            backoff += self._backoffs.get(context, 0.0)
        # Unigram lookup above always succeeds.
        raise AssertionError(f"no unigram for {word!r}")

    def start(self, context: Iterable[str] = ()) -> LMState:
        state = self._trim((SENTENCE_START,))
        for word in context:
            state, _ = self.score(state, word)
        return state

    def score(self, state: LMState, word: str) -> tuple[LMState, float]:
        score = self.log_prob(state, word)
        known = word if (word,) in self._log_probs else UNKNOWN_WORD
        return self._trim(state + (known,)), score

    def finish(self, state: LMState) -> tuple[LMState, float]:
        return self.score(state, SENTENCE_END)

    @classmethod
    def from_lines(cls, lines: Iterable[str], source: str = "<arpa>") -> "ArpaLanguageModel":
        """Parse ARPA text."""
        expected_counts: dict[int, int] = {}
        log_probs: dict[LMState, float] = {}
        backoffs: dict[LMState, float] = {}
        section: int | None = None
        seen_data = False
        seen_end = False

        for line_number, raw in enumerate(lines, start=1):
            line = raw.strip()
            if not line:
                continue
            where = f"{source}:{line_number}"

            if line == "\\data\\":
                seen_data = True
                section = 0
                continue
            if line == "\\end\\":
                seen_end = True
                break
            match = _SECTION_RE.match(line)
            if match:
                section = int(match.group(1))
                if section not in expected_counts:
                    raise LanguageModelError(f"{where}: section {section}-grams not declared in \\data\\")
                continue

            if section is None:
                # Free text before \data\ is allowed.
                continue
            if section == 0:
                match = _COUNT_RE.match(line)
                if not match:
                    raise LanguageModelError(f"{where}: expected 'ngram N=count', got {line!r}")
                expected_counts[int(match.group(1))] = int(match.group(2))
                continue

            fields = line.split()
            if len(fields) not in (section + 1, section + 2):
                raise LanguageModelError(f"{where}: malformed {section}-gram line {line!r}")
            try:
                log_prob = float(fields[0])
                backoff = float(fields[section + 1]) if len(fields) == section + 2 else None
            except ValueError as e:
                raise LanguageModelError(f"{where}: {e}") from e
            ngram = tuple(fields[1 : section + 1])
            log_probs[ngram] = log_prob
            if backoff is not None:
                backoffs[ngram] = backoff

        if not seen_data:
            raise LanguageModelError(f"{source}: missing \\data\\ header")
        if not seen_end:
            logger.warning(f"{source}: missing \\end\\ marker")
        if not log_probs:
            raise LanguageModelError(f"{source}: no n-grams")

        for n, expected in expected_counts.items():
            found = sum(1 for ngram in log_probs if len(ngram) == n)
            if found != expected:
                logger.warning(f"{source}: declared {expected} {n}-grams, found {found}")

        order = max(expected_counts) if expected_counts else None
        return cls(log_probs, backoffs, order)

    def __repr__(self) -> str:
        return f"ArpaLanguageModel(order={self.order}, ngrams={len(self._log_probs)})"


def load_language_model(path: str | os.PathLike | None) -> LanguageModel:
    """Load an ARPA file; an empty path gives the ZeroLanguageModel."""
    if not path:
        logger.info("No language model file, using zero language model")
        return ZeroLanguageModel()

    try:
        with open(path, encoding="utf-8") as f:
            model = ArpaLanguageModel.from_lines(f, str(path))
    except OSError as e:
        raise InputFileError(str(path), "language model file", e) from e
    except UnicodeDecodeError as e:
        raise LanguageModelError(f"{path}: not valid UTF-8: {e}") from e

    logger.debug(f"Loaded {model!r} from {path}")
    return model
