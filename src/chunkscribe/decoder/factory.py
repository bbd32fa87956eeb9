"""Factory for decoder sessions.

DecoderFactory owns the read-only decoding resources (tokens, lexicon trie,
language model, ASG transitions) and hands out independent sessions that
share them.
"""

import logging
import os
from collections.abc import Iterable

import numpy as np

from ..core.exceptions import ConfigurationError, LexiconError
from .lexicon import Lexicon, LexiconTrie, SmearingMode, load_lexicon
from .lm import LanguageModel, load_language_model
from .options import CriterionType, DecoderOptions
from .session import DecoderSession
from .tokens import TokenSet, load_tokens

logger = logging.getLogger(__name__)


class DecoderFactory:
    """Builds the search trie once and creates decoder sessions from it.

    Example:
        factory = DecoderFactory.from_files(
            tokens_file="tokens.txt",
            lexicon_file="lexicon.txt",
            language_model_file="lm.arpa",
        )
        session = factory.create_session(options)

    """

    def __init__(
        self,
        tokens: TokenSet,
        lexicon: Lexicon,
        language_model: LanguageModel,
        smearing: SmearingMode | str = SmearingMode.MAX,
        silence_token: str = "_",
        context_size: int = 0,
        transitions: np.ndarray | None = None,
        blank_token: str = "#",
        unk_word: str = "<unk>",
    ):
        """Validate the resources and build the smeared trie.

        Args:
            tokens: Acoustic model output alphabet
            lexicon: Words and their token spellings
            language_model: Word-level LM shared by all sessions
            smearing: How unigram scores are spread over the trie
            silence_token: Token standing for silence between words
            context_size: Number of context words used to seed sessions
            transitions: ASG transition scores, (tokens, tokens)
            blank_token: CTC blank token
            unk_word: Word reported for out-of-lexicon spellings

        Raises:
            LexiconError: If the lexicon or silence token do not fit the tokens
            ConfigurationError: If transitions or context_size are invalid

        """
        self.tokens = tokens
        self.lexicon = lexicon
        self.language_model = language_model
        self.smearing = SmearingMode.parse(smearing)
        self.unk_word = unk_word

        lexicon.validate(len(tokens))
        silence_id = tokens.get(silence_token)
        if silence_id is None:
            raise LexiconError(f"silence token {silence_token!r} is not in the token set")
        self.silence_id = silence_id
        self.blank_id = tokens.get(blank_token)

        if context_size < 0:
            raise ConfigurationError(f"context_size must not be negative, got {context_size}")
        self.context_size = context_size

        if transitions is not None:
            transitions = np.asarray(transitions, dtype=np.float32)
            expected = (len(tokens), len(tokens))
            if transitions.shape != expected:
                raise ConfigurationError(f"transitions must have shape {expected}, got {transitions.shape}")
        self.transitions = transitions

        self.trie = LexiconTrie.from_lexicon(lexicon)
        start_state = language_model.start()
        unigram_scores = {word: language_model.score(start_state, word)[1] for word in lexicon}
        self.trie.smear(unigram_scores, self.smearing)

        logger.info(
            f"Decoder factory ready: {len(tokens)} tokens, {len(lexicon)} words, "
            f"smearing={self.smearing.value}"
        )

    @classmethod
    def from_files(
        cls,
        tokens_file: str | os.PathLike,
        lexicon_file: str | os.PathLike,
        language_model_file: str | os.PathLike | None = None,
        tokens: TokenSet | None = None,
        **kwargs,
    ) -> "DecoderFactory":
        """Load tokens, lexicon and language model files.

        An already loaded token set may be passed to skip reading tokens_file
        again. Remaining keyword arguments go to the constructor.
        """
        if tokens is None:
            tokens = load_tokens(tokens_file)
        lexicon = load_lexicon(lexicon_file, tokens)
        language_model = load_language_model(language_model_file)
        return cls(tokens, lexicon, language_model, **kwargs)

    def create_session(self, options: DecoderOptions, context_words: Iterable[str] = ()) -> DecoderSession:
        """Start a new, independent decoding session.

        Args:
            options: Beam search settings
            context_words: Preceding words; the last context_size seed the LM

        Raises:
            ConfigurationError: If CTC is requested without a blank token

        """
        if options.criterion_type is CriterionType.CTC and self.blank_id is None:
            raise ConfigurationError("CTC decoding needs a blank token in the token set")

        context = list(context_words)[-self.context_size :] if self.context_size else []
        lm_state = self.language_model.start(context)
        return DecoderSession(self, options, lm_state)
