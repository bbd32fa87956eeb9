"""Shared fixtures: a tiny but real model directory and scripted audio.

The acoustic chain is made of ordinary serialized layers. Every 10 ms frame
of audio holds a constant level; the chain maps level k/128 to token k with
a sharp log-softmax, and digital silence to the silence token "_". Audio is
therefore written by spelling tokens frame by frame.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pytest

from chunkscribe.core.config import reset_config
from chunkscribe.modules import Framing, Linear, LogSoftmax, Sequential, save_module

TOKENS = ["_", "#", "a", "c", "d", "e", "h", "i", "j", "l", "n", "s", "t", "u"]
WORDS = ["uncle", "julia", "said", "and", "auntie", "helen"]

SAMPLE_RATE = 16000
FRAME_SAMPLES = 160
LEVEL_STEP = 256  # int16 units per token id
SHARPNESS = 20.0

# (first frame, word); every letter lasts two frames, silence elsewhere
SCRIPT = [(105, "uncle"), (155, "julia"), (170, "said"), (255, "and"), (265, "auntie"), (305, "helen")]
TOTAL_FRAMES = 350

EXPECTED_LINES = [
    "start: 0 ms - end: 500 ms :",
    "start: 500 ms - end: 1000 ms :",
    "start: 1000 ms - end: 1500 ms : uncle",
    "start: 1500 ms - end: 2000 ms : julia said",
    "start: 2000 ms - end: 2500 ms :",
    "start: 2500 ms - end: 3000 ms : and auntie",
    "start: 3000 ms - end: 3500 ms : helen",
]

DECODER_OPTIONS = {
    "beamSize": 10,
    "beamSizeToken": 5,
    "beamThreshold": 25,
    "lmWeight": 0.5,
    "wordScore": 1,
    "unkScore": float("-inf"),
    "silScore": 0,
    "eosScore": 0,
    "logAdd": False,
    "criterionType": "CTC",
}


def feature_module() -> Sequential:
    """10 ms frames reduced to their mean level."""
    mean = Linear(np.full((1, FRAME_SAMPLES), 1.0 / FRAME_SAMPLES, dtype=np.float32))
    return Sequential([Framing(FRAME_SAMPLES, FRAME_SAMPLES), mean], name="features")


def acoustic_module(n_tokens: int = len(TOKENS)) -> Sequential:
    """Scores token j by -SHARPNESS * (128 * level - j) ** 2, normalized."""
    ids = np.arange(n_tokens, dtype=np.float32)
    scale = 32768.0 / LEVEL_STEP
    weight = (2.0 * SHARPNESS * scale * ids)[:, None]
    bias = -SHARPNESS * ids**2
    return Sequential([Linear(weight, bias), LogSoftmax()], name="acoustic")


def frame_tokens(script=SCRIPT, total_frames=TOTAL_FRAMES) -> list[int]:
    """Token id of every frame for a word script."""
    frames = [0] * total_frames
    for first, word in script:
        position = first
        for letter in word:
            token_id = TOKENS.index(letter)
            frames[position] = frames[position + 1] = token_id
            position += 2
    return frames


def pcm_for_frames(frame_token_ids: list[int]) -> bytes:
    """Little-endian int16 PCM holding one constant level per frame."""
    levels = np.repeat(np.asarray(frame_token_ids, dtype=np.int16) * LEVEL_STEP, FRAME_SAMPLES)
    return levels.astype("<i2").tobytes()


def emissions_for_frames(frame_token_ids: list[int], n_tokens: int = len(TOKENS)) -> np.ndarray:
    """Emission scores the acoustic module produces for the given frames."""
    ids = np.arange(n_tokens, dtype=np.float32)
    scores = -SHARPNESS * (np.asarray(frame_token_ids, dtype=np.float32)[:, None] - ids[None, :]) ** 2
    return LogSoftmax().forward(scores)


def unigram_arpa(words, log_prob: float = -1.0) -> str:
    entries = ["-99 <s>", f"{log_prob} </s>"] + [f"{log_prob} {word}" for word in words]
    return "\\data\\\nngram 1={}\n\n\\1-grams:\n{}\n\n\\end\\\n".format(len(entries), "\n".join(entries))


@dataclass
class ModelFiles:
    base_path: Path
    feature_module_file: str = "feature_extractor.npz"
    acoustic_module_file: str = "acoustic_model.npz"
    tokens_file: str = "tokens.txt"
    lexicon_file: str = "lexicon.txt"
    language_model_file: str = "language_model.arpa"
    decoder_options_file: str = "decoder_options.json"
    audio_file: str = "audio.raw"

    def path(self, name: str) -> Path:
        return self.base_path / getattr(self, name)

    def cli_args(self) -> list[str]:
        return [
            f"--input-files-base-path={self.base_path}",
            f"--feature-module-file={self.feature_module_file}",
            f"--acoustic-module-file={self.acoustic_module_file}",
            f"--tokens-file={self.tokens_file}",
            f"--lexicon-file={self.lexicon_file}",
            f"--language-model-file={self.language_model_file}",
            f"--decoder-options-file={self.decoder_options_file}",
            f"--input-audio-file={self.audio_file}",
        ]


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path_factory):
    """Keep tests away from the user's config file and log directory."""
    monkeypatch.setenv("CHUNKSCRIBE_LOG_DIR", str(tmp_path_factory.getbasetemp() / "logs"))
    monkeypatch.setenv("CHUNKSCRIBE_CONFIG", str(tmp_path_factory.getbasetemp() / "no-config.toml"))
    monkeypatch.delenv("CHUNKSCRIBE_BASE_PATH", raising=False)
    monkeypatch.delenv("CHUNKSCRIBE_LOG_LEVEL", raising=False)
    reset_config()
    yield
    reset_config()

    # The CLI detaches the package logger from the root logger; undo that so
    # caplog keeps seeing records in later tests.
    package_logger = logging.getLogger("chunkscribe")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def model_files(tmp_path) -> ModelFiles:
    """A complete model directory plus the scripted 3.5 s recording."""
    files = ModelFiles(base_path=tmp_path)
    save_module(feature_module(), files.path("feature_module_file"))
    save_module(acoustic_module(), files.path("acoustic_module_file"))
    files.path("tokens_file").write_text("\n".join(TOKENS) + "\n", encoding="utf-8")
    files.path("lexicon_file").write_text(
        "".join(f"{word} {' '.join(word)}\n" for word in WORDS), encoding="utf-8"
    )
    files.path("language_model_file").write_text(unigram_arpa(WORDS), encoding="utf-8")
    files.path("decoder_options_file").write_text(json.dumps(DECODER_OPTIONS), encoding="utf-8")
    files.path("audio_file").write_bytes(pcm_for_frames(frame_tokens()))
    return files


class ToyASR:
    """The toy model and its script, handed to tests through the toy_asr fixture."""

    tokens = TOKENS
    words = WORDS
    script = SCRIPT
    total_frames = TOTAL_FRAMES
    expected_lines = EXPECTED_LINES
    decoder_options = DECODER_OPTIONS

    feature_module = staticmethod(feature_module)
    acoustic_module = staticmethod(acoustic_module)
    frame_tokens = staticmethod(frame_tokens)
    pcm_for_frames = staticmethod(pcm_for_frames)
    emissions_for_frames = staticmethod(emissions_for_frames)
    unigram_arpa = staticmethod(unigram_arpa)


@pytest.fixture
def toy_asr() -> type[ToyASR]:
    return ToyASR
