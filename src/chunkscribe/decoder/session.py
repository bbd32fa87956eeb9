"""Incremental lexicon-constrained beam search.

DecoderSession consumes emission frames as they arrive and reports words as
soon as every surviving hypothesis agrees on them:
- Expands each hypothesis through the lexicon trie
- Prunes per hypothesis, merges equivalent candidates, prunes globally
- Commits the words behind the most recent common ancestor of the beam
"""

import heapq
import logging
import math
from typing import TYPE_CHECKING

import numpy as np

from ..core.exceptions import DecoderStateError, EmissionShapeError
from .lexicon import TrieNode
from .lm import LMState
from .options import CriterionType, DecoderOptions
from .types import DecoderState, FinalizedWord

if TYPE_CHECKING:
    from .factory import DecoderFactory

logger = logging.getLogger(__name__)


class Hypothesis:
    """One beam entry at a given frame, linked to the entry it grew from."""

    __slots__ = (
        "score",
        "lm_state",
        "node",
        "token",
        "prev_blank",
        "word",
        "word_start",
        "frame",
        "parent",
    )

    def __init__(
        self,
        score: float,
        lm_state: LMState,
        node: TrieNode,
        token: int,
        prev_blank: bool,
        frame: int,
        parent: "Hypothesis | None" = None,
        word: FinalizedWord | None = None,
        word_start: int | None = None,
    ):
        self.score = score
        self.lm_state = lm_state
        self.node = node
        self.token = token
        self.prev_blank = prev_blank
        self.frame = frame
        self.parent = parent
        self.word = word
        self.word_start = word_start

    @property
    def merge_key(self) -> tuple:
        return (self.lm_state, id(self.node), self.token, self.prev_blank)

    def words_since(self, ancestor: "Hypothesis | None") -> list[FinalizedWord]:
        """Words completed after ancestor up to and including this entry."""
        words = []
        node: Hypothesis | None = self
        while node is not None and node is not ancestor:
            if node.word is not None:
                words.append(node.word)
            node = node.parent
        words.reverse()
        return words

    def __repr__(self) -> str:
        return (
            f"Hypothesis(score={self.score:.3f}, frame={self.frame}, token={self.token}, "
            f"prev_blank={self.prev_blank}, word={self.word})"
        )


class DecoderSession:
    """Beam search state for one audio stream.

    Created by DecoderFactory.create_session(). step() may be called any
    number of times with (frames, tokens) emission arrays; finalize() ends the
    stream and returns the remaining words of the best hypothesis. The
    session is unusable afterwards.

    Example:
        session = factory.create_session(options)
        for emissions in chunks:
            words = session.step(emissions)   # newly committed words
        words += session.finalize()

    """

    def __init__(self, factory: "DecoderFactory", options: DecoderOptions, lm_state: LMState):
        self.factory = factory
        self.options = options
        self._state = DecoderState.ACTIVE
        self._frames_decoded = 0

        self._n_tokens = len(factory.tokens)
        self._root = factory.trie.root
        self._sil = factory.silence_id
        self._blank = factory.blank_id
        self._is_ctc = options.criterion_type is CriterionType.CTC

        # The anchor is the newest entry every hypothesis descends from.
        # Words up to and including it have already been reported.
        self._anchor = Hypothesis(
            score=0.0,
            lm_state=lm_state,
            node=self._root,
            token=self._sil,
            prev_blank=False,
            frame=-1,
        )
        self._beam: list[Hypothesis] = [self._anchor]

    @property
    def state(self) -> DecoderState:
        """Current session state."""
        return self._state

    @property
    def frames_decoded(self) -> int:
        """Emission frames consumed so far."""
        return self._frames_decoded

    @property
    def hypotheses(self) -> tuple[Hypothesis, ...]:
        """Snapshot of the active beam, best first."""
        return tuple(self._beam)

    def _check_active(self, operation: str) -> None:
        if self._state is not DecoderState.ACTIVE:
            raise DecoderStateError(f"cannot {operation}: decoder session is {self._state.value}")

    def step(self, emissions: np.ndarray) -> list[FinalizedWord]:
        """Advance the search over emission frames.

        Args:
            emissions: (frames, tokens) acoustic scores

        Returns:
            Words committed by these frames, in order

        Raises:
            EmissionShapeError: If emissions are not (frames, tokens)
            DecoderStateError: If the session was finalized

        """
        self._check_active("step")
        emissions = np.asarray(emissions, dtype=np.float32)
        if emissions.ndim != 2 or emissions.shape[1] != self._n_tokens:
            raise EmissionShapeError(
                f"expected emissions of shape (frames, {self._n_tokens}), got {emissions.shape}"
            )

        committed: list[FinalizedWord] = []
        for frame_scores in emissions:
            frame = self._frames_decoded
            self._beam = self._advance(frame_scores, frame)
            self._frames_decoded += 1
            committed.extend(self._commit())

        if committed:
            logger.debug(f"Committed {len(committed)} words at frame {self._frames_decoded}")
        return committed

    def finalize(self) -> list[FinalizedWord]:
        """End the stream and return the best hypothesis' remaining words."""
        self._check_active("finalize")
        self._state = DecoderState.FINALIZED

        opts = self.options
        lm = self.factory.language_model
        best: Hypothesis | None = None
        best_score = -math.inf
        for hyp in self._beam:
            _, lm_score = lm.finish(hyp.lm_state)
            score = hyp.score + opts.lm_weight * (lm_score - hyp.node.max_score) + opts.eos_score
            if best is None or score > best_score:
                best, best_score = hyp, score

        self._beam = []
        if best is None:
            return []
        words = best.words_since(self._anchor)
        logger.debug(f"Finalized after {self._frames_decoded} frames, {len(words)} trailing words")
        return words

    def _advance(self, scores: np.ndarray, frame: int) -> list[Hypothesis]:
        opts = self.options
        beam_size_token = min(opts.beam_size_token, self._n_tokens)
        # Stable order so equal scores always pick the same tokens.
        top_tokens = set(np.argsort(-scores, kind="stable")[:beam_size_token].tolist())

        candidates: list[Hypothesis] = []
        for hyp in self._beam:
            expansions = self._expand(hyp, scores, frame, top_tokens)
            if len(expansions) > beam_size_token:
                expansions = heapq.nlargest(beam_size_token, expansions, key=lambda h: h.score)
            candidates.extend(expansions)

        merged = self._merge(candidates)
        if not merged:
            return []

        best_score = max(h.score for h in merged)
        survivors = [h for h in merged if h.score >= best_score - opts.beam_threshold]
        survivors.sort(key=lambda h: h.score, reverse=True)
        return survivors[: opts.beam_size]

    def _transition(self, token: int, prev: int, frame: int) -> float:
        transitions = self.factory.transitions
        if self._is_ctc or transitions is None or frame == 0:
            return 0.0
        return float(transitions[token, prev])

    def _expand(
        self, hyp: Hypothesis, scores: np.ndarray, frame: int, top_tokens: set[int]
    ) -> list[Hypothesis]:
        opts = self.options
        lm = self.factory.language_model
        node = hyp.node
        at_root = node is self._root
        prev = hyp.token
        out: list[Hypothesis] = []

        # Enter a trie child: continue a word, or complete one.
        for token, child in node.children.items():
            if token not in top_tokens:
                continue
            if self._is_ctc and token == prev and not hyp.prev_blank:
                continue

            score = hyp.score + float(scores[token]) + self._transition(token, prev, frame)
            if token == self._sil:
                score += opts.sil_score
            word_start = frame if at_root else hyp.word_start

            if child.children:
                out.append(
                    Hypothesis(
                        score + opts.lm_weight * (child.max_score - node.max_score),
                        hyp.lm_state,
                        child,
                        token,
                        False,
                        frame,
                        hyp,
                        word_start=word_start,
                    )
                )

            # A single-token word must not be emitted again on every frame it spans.
            if at_root and token == prev:
                continue

            for label in child.labels:
                lm_state, lm_score = lm.score(hyp.lm_state, label)
                out.append(
                    Hypothesis(
                        score + opts.lm_weight * (lm_score - node.max_score) + opts.word_score,
                        lm_state,
                        self._root,
                        token,
                        False,
                        frame,
                        hyp,
                        word=FinalizedWord(label, word_start, frame),
                    )
                )

            if not child.labels and opts.unk_score > -math.inf:
                lm_state, lm_score = lm.score(hyp.lm_state, self.factory.unk_word)
                out.append(
                    Hypothesis(
                        score + opts.lm_weight * (lm_score - node.max_score) + opts.unk_score,
                        lm_state,
                        self._root,
                        token,
                        False,
                        frame,
                        hyp,
                        word=FinalizedWord(self.factory.unk_word, word_start, frame),
                    )
                )

        # Stay on the same trie node.
        if at_root:
            score = hyp.score + float(scores[self._sil]) + self._transition(self._sil, prev, frame)
            out.append(
                Hypothesis(score + opts.sil_score, hyp.lm_state, node, self._sil, False, frame, hyp)
            )
            # The last token of a word may span several frames.
            if self._is_ctc and not hyp.prev_blank and prev not in (self._sil, self._blank):
                out.append(
                    Hypothesis(hyp.score + float(scores[prev]), hyp.lm_state, node, prev, False, frame, hyp)
                )
        elif not self._is_ctc or not hyp.prev_blank:
            score = hyp.score + float(scores[prev]) + self._transition(prev, prev, frame)
            if prev == self._sil:
                score += opts.sil_score
            out.append(
                Hypothesis(score, hyp.lm_state, node, prev, False, frame, hyp, word_start=hyp.word_start)
            )

        if self._is_ctc:
            out.append(
                Hypothesis(
                    hyp.score + float(scores[self._blank]),
                    hyp.lm_state,
                    node,
                    self._blank,
                    True,
                    frame,
                    hyp,
                    word_start=hyp.word_start,
                )
            )
        return out

    def _merge(self, candidates: list[Hypothesis]) -> list[Hypothesis]:
        """Collapse candidates that will behave identically from now on."""
        merged: dict[tuple, Hypothesis] = {}
        for candidate in candidates:
            if math.isnan(candidate.score):
                continue
            key = candidate.merge_key
            kept = merged.get(key)
            if kept is None:
                merged[key] = candidate
                continue
            if self.options.log_add:
                total = float(np.logaddexp(kept.score, candidate.score))
            else:
                total = max(kept.score, candidate.score)
            if candidate.score > kept.score:
                merged[key] = kept = candidate
            kept.score = total
        return list(merged.values())

    def _commit(self) -> list[FinalizedWord]:
        if not self._beam:
            return []

        # Every entry of the beam sits at the same frame, so their ancestors
        # meet at the same depth.
        nodes = self._beam
        while len({id(node) for node in nodes}) > 1:
            nodes = [node.parent for node in nodes]
        ancestor = nodes[0]
        if ancestor is self._anchor:
            return []

        words = ancestor.words_since(self._anchor)
        ancestor.parent = None
        self._anchor = ancestor
        return words
