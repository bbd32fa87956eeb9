"""Assembly of a StreamingTranscriber from files on disk.

Everything is loaded and validated here, before the first audio byte is
read, so a bad input file fails the run up front.
"""

import logging
import sys
from typing import BinaryIO

from ..core.exceptions import InputFileError
from ..core.run_config import TranscribeConfig
from ..core.timing import log_elapsed
from ..decoder.factory import DecoderFactory
from ..decoder.options import load_decoder_options
from ..decoder.tokens import load_tokens
from ..modules.sequential import Sequential
from ..modules.serialization import load_module
from .transcriber import StreamingTranscriber

logger = logging.getLogger(__name__)


def build_transcriber(config: TranscribeConfig) -> StreamingTranscriber:
    """Load modules, tokens, decoder options and decoder resources.

    Args:
        config: Resolved run configuration

    Returns:
        Transcriber ready to consume audio

    Raises:
        ChunkscribeError: If any input file is missing or malformed

    """
    with log_elapsed("Feature module load", logger):
        feature_module = load_module(config.full_path(config.feature_module_file))

    with log_elapsed("Acoustic module load", logger):
        acoustic_module = load_module(config.full_path(config.acoustic_module_file))

    dnn = Sequential(name="dnn")
    dnn.append(feature_module).append(acoustic_module)

    with log_elapsed("Tokens load", logger):
        tokens = load_tokens(config.full_path(config.tokens_file))
    logger.info(f"Tokens loaded - {len(tokens)} tokens")

    with log_elapsed("Decoder options load", logger):
        options = load_decoder_options(config.full_path(config.decoder_options_file))

    with log_elapsed("Create decoder factory", logger):
        factory = DecoderFactory.from_files(
            tokens_file=config.full_path(config.tokens_file),
            lexicon_file=config.full_path(config.lexicon_file),
            language_model_file=config.full_path(config.language_model_file),
            tokens=tokens,
            smearing=config.smearing,
            silence_token=config.silence_token,
            context_size=config.lm_context_size,
            blank_token=config.blank_token,
            unk_word=config.unk_word,
        )

    # Fail now, not on the first window, if the options do not fit the tokens.
    factory.create_session(options)

    return StreamingTranscriber(
        dnn,
        factory,
        options,
        window_ms=config.window_ms,
        sample_rate=config.sample_rate,
    )


def open_audio_source(config: TranscribeConfig, stdin: BinaryIO | None = None) -> BinaryIO:
    """Open the configured audio file, or return stdin when none is set."""
    if config.reads_stdin:
        logger.info("Reading audio from stdin")
        return stdin if stdin is not None else sys.stdin.buffer

    path = config.full_path(config.input_audio_file)
    try:
        source = open(path, "rb")
    except OSError as e:
        raise InputFileError(path, "input_audio_file", e) from e
    logger.info(f"Reading audio from {path}")
    return source
