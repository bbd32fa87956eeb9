import os
from dataclasses import dataclass
from typing import Any

from .config import ConfigLoader

_PATH_FIELDS = (
    "feature_module_file",
    "acoustic_module_file",
    "tokens_file",
    "lexicon_file",
    "language_model_file",
    "decoder_options_file",
    "input_audio_file",
)


def get_full_path(file_name: str, base_path: str) -> str:
    """Prefix file_name with base_path unless it is already absolute."""
    if not file_name or not base_path or os.path.isabs(file_name):
        return file_name
    return os.path.join(os.path.expanduser(base_path), file_name)


@dataclass
class TranscribeConfig:
    debug: bool = False
    input_files_base_path: str = "."
    feature_module_file: str = "feature_extractor.npz"
    acoustic_module_file: str = "acoustic_model.npz"
    tokens_file: str = "tokens.txt"
    lexicon_file: str = "lexicon.txt"
    language_model_file: str = "language_model.arpa"
    decoder_options_file: str = "decoder_options.json"
    input_audio_file: str = ""
    silence_token: str = "_"
    blank_token: str = "#"
    unk_word: str = "<unk>"
    smearing: str = "max"
    lm_context_size: int = 0
    sample_rate: int = 16000
    window_ms: int = 500

    @classmethod
    def from_sources(cls, config: ConfigLoader, **overrides: Any) -> "TranscribeConfig":
        """Build from the config file, letting non-None overrides (CLI flags) win."""
        values: dict[str, Any] = {name: config.get_path(name) for name in _PATH_FIELDS}
        values.update(
            input_files_base_path=config.input_files_base_path,
            silence_token=config.silence_token,
            blank_token=config.blank_token,
            unk_word=config.unk_word,
            smearing=config.smearing,
            lm_context_size=config.lm_context_size,
            sample_rate=config.sample_rate,
            window_ms=config.window_ms,
        )
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    def full_path(self, file_name: str) -> str:
        return get_full_path(file_name, self.input_files_base_path)

    @property
    def reads_stdin(self) -> bool:
        return not self.input_audio_file
