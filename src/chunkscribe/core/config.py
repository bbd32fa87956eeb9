#!/usr/bin/env python3
"""Configuration loader that reads from config files."""
import copy
import os
from pathlib import Path
from typing import Any

import tomllib

from .exceptions import ConfigurationError, InputFileError

DEFAULT_CONFIG: dict[str, Any] = {
    "paths": {
        "input_files_base_path": ".",
        "feature_module_file": "feature_extractor.npz",
        "acoustic_module_file": "acoustic_model.npz",
        "tokens_file": "tokens.txt",
        "lexicon_file": "lexicon.txt",
        "language_model_file": "language_model.arpa",
        "decoder_options_file": "decoder_options.json",
        "input_audio_file": "",
    },
    "audio": {"sample_rate": 16000, "window_ms": 500},
    "decoder": {
        "silence_token": "_",
        "blank_token": "#",
        "unk_word": "<unk>",
        "smearing": "max",
        "lm_context_size": 0,
    },
    "logging": {"level": "INFO", "console": False, "file": True},
}

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigLoader:
    """Load configuration from config files."""

    def __init__(self, config_path: str | Path | None = None) -> None:
        if config_path is None:
            config_path = self._default_config_path()

        self.config_file = str(config_path)
        config_path = Path(config_path)
        if config_path.exists():
            try:
                with open(config_path, "rb") as f:
                    full_config = tomllib.load(f)
            except OSError as e:
                raise InputFileError(self.config_file, "config file", e) from e
            except tomllib.TOMLDecodeError as e:
                raise ConfigurationError(f"{self.config_file}: invalid TOML: {e}") from e
            user_config = full_config.get("chunkscribe", {})
            if not isinstance(user_config, dict):
                raise ConfigurationError(f"{self.config_file}: [chunkscribe] must be a table")
        else:
            user_config = {}

        self._config = self._merge_dicts(DEFAULT_CONFIG, user_config)

        env_base_path = os.environ.get("CHUNKSCRIBE_BASE_PATH")
        if env_base_path:
            self._config["paths"]["input_files_base_path"] = env_base_path

    def _default_config_path(self) -> Path:
        env_path = os.environ.get("CHUNKSCRIBE_CONFIG")
        if env_path:
            return Path(env_path)
        return Path.home() / ".chunkscribe" / "config.toml"

    def _merge_dicts(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        merged = copy.deepcopy(base)
        for key, value in override.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = self._merge_dicts(merged[key], value)
            else:
                merged[key] = value
        return merged

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get a value using dot notation (e.g., 'paths.tokens_file')"""
        keys = key_path.split(".")
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def get_int(self, key_path: str, default: int, minimum: int | None = None) -> int:
        """Get an integer setting, raising ConfigurationError for anything else."""
        value = self.get(key_path, default)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(f"{self.config_file}: {key_path} must be an integer, got {value!r}")
        if minimum is not None and value < minimum:
            raise ConfigurationError(f"{self.config_file}: {key_path} must be at least {minimum}, got {value}")
        return value

    def get_bool(self, key_path: str, default: bool) -> bool:
        value = self.get(key_path, default)
        if not isinstance(value, bool):
            raise ConfigurationError(f"{self.config_file}: {key_path} must be true or false, got {value!r}")
        return value

    @property
    def input_files_base_path(self) -> str:
        return str(self.get("paths.input_files_base_path", "."))

    @property
    def sample_rate(self) -> int:
        return self.get_int("audio.sample_rate", 16000, minimum=1)

    @property
    def window_ms(self) -> int:
        return self.get_int("audio.window_ms", 500, minimum=1)

    @property
    def silence_token(self) -> str:
        return str(self.get("decoder.silence_token", "_"))

    @property
    def blank_token(self) -> str:
        return str(self.get("decoder.blank_token", "#"))

    @property
    def unk_word(self) -> str:
        return str(self.get("decoder.unk_word", "<unk>"))

    @property
    def smearing(self) -> str:
        return str(self.get("decoder.smearing", "max"))

    @property
    def lm_context_size(self) -> int:
        return self.get_int("decoder.lm_context_size", 0, minimum=0)

    @property
    def log_level(self) -> str:
        # Check environment variable first
        level = os.environ.get("CHUNKSCRIBE_LOG_LEVEL") or str(self.get("logging.level", "INFO"))
        if level.upper() not in _LOG_LEVELS:
            raise ConfigurationError(
                f"{self.config_file}: log level must be one of {', '.join(_LOG_LEVELS)}, got {level!r}"
            )
        return level.upper()

    @property
    def log_to_console(self) -> bool:
        return self.get_bool("logging.console", False)

    @property
    def log_to_file(self) -> bool:
        return self.get_bool("logging.file", True)

    def get_path(self, name: str) -> str:
        """Get a configured input file name (e.g. 'tokens_file')"""
        return str(self.get(f"paths.{name}", ""))


# Global singleton instance
_config_loader: ConfigLoader | None = None


def get_config() -> ConfigLoader:
    """Get the global config loader instance"""
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader


def reset_config() -> None:
    """Drop the cached config loader so the next get_config() re-reads files."""
    global _config_loader
    _config_loader = None

