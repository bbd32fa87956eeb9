"""Lexicon-constrained beam search decoding."""

from .factory import DecoderFactory
from .lexicon import Lexicon, LexiconTrie, SmearingMode, TrieNode, load_lexicon
from .lm import ArpaLanguageModel, LanguageModel, ZeroLanguageModel, load_language_model
from .options import CriterionType, DecoderOptions, load_decoder_options
from .session import DecoderSession, Hypothesis
from .tokens import TokenNotFoundError, TokenSet, load_tokens
from .types import DecoderState, FinalizedWord

__all__ = [
    "ArpaLanguageModel",
    "CriterionType",
    "DecoderFactory",
    "DecoderOptions",
    "DecoderSession",
    "DecoderState",
    "FinalizedWord",
    "Hypothesis",
    "LanguageModel",
    "Lexicon",
    "LexiconTrie",
    "SmearingMode",
    "TokenNotFoundError",
    "TokenSet",
    "TrieNode",
    "ZeroLanguageModel",
    "load_decoder_options",
    "load_language_model",
    "load_lexicon",
    "load_tokens",
]
