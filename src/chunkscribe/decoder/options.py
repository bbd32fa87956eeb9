"""Decoder options and their JSON loader.

The JSON object must hold exactly these camelCase fields (unknown keys are
ignored with a warning):

    {
        "beamSize": 100, "beamSizeToken": 10, "beamThreshold": 20,
        "lmWeight": 0.67, "wordScore": 0.6, "unkScore": -Infinity,
        "silScore": 0, "eosScore": 0, "logAdd": false, "criterionType": "CTC"
    }
"""

import json
import logging
import math
import os
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, ValidationError, field_validator

from ..core.exceptions import ConfigurationError, InputFileError

logger = logging.getLogger(__name__)


class CriterionType(Enum):
    """How acoustic scores were trained, which decides blank handling."""

    ASG = 0
    CTC = 1

    @classmethod
    def parse(cls, value: Any) -> "CriterionType":
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ConfigurationError(f"criterionType must be a name or an integer code, got {value!r}")
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise ConfigurationError(f"unknown criterionType code {value}") from None
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ConfigurationError(f"unknown criterionType {value!r}") from None
        raise ConfigurationError(f"criterionType must be a name or an integer code, got {value!r}")


def _format_errors(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "options"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


class DecoderOptions(BaseModel):
    """Beam search settings shared by every session of a decoder."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    beam_size: StrictInt = Field(alias="beamSize", gt=0)
    beam_size_token: StrictInt = Field(alias="beamSizeToken", gt=0)
    beam_threshold: float = Field(alias="beamThreshold", ge=0)
    lm_weight: float = Field(alias="lmWeight")
    word_score: float = Field(alias="wordScore")
    unk_score: float = Field(alias="unkScore")
    sil_score: float = Field(alias="silScore")
    eos_score: float = Field(alias="eosScore")
    log_add: StrictBool = Field(alias="logAdd")
    criterion_type: CriterionType = Field(alias="criterionType")

    @field_validator(
        "beam_threshold", "lm_weight", "word_score", "unk_score", "sil_score", "eos_score", mode="before"
    )
    @classmethod
    def _number(cls, value: Any) -> float:
        # Integers count as numbers, booleans and numeric strings do not.
        if isinstance(value, bool) or not isinstance(value, int | float):
            raise ValueError(f"must be a number, got {value!r}")
        value = float(value)
        if math.isnan(value):
            raise ValueError("must not be NaN")
        return value

    @field_validator("criterion_type", mode="before")
    @classmethod
    def _criterion(cls, value: Any) -> CriterionType:
        try:
            return CriterionType.parse(value)
        except ConfigurationError as e:
            raise ValueError(str(e)) from None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DecoderOptions":
        """Build options from a JSON-style mapping, checking every field."""
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"decoder options must be an object, got {type(data).__name__}")

        known = {field.alias for field in cls.model_fields.values()}
        for key in sorted(set(data) - known):
            logger.warning(f"Ignoring unknown decoder option: {key}")

        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            raise ConfigurationError(f"invalid decoder options: {_format_errors(e)}") from e

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON field layout."""
        result = self.model_dump(by_alias=True)
        result["criterionType"] = self.criterion_type.name
        return result


def load_decoder_options(path: str | os.PathLike) -> DecoderOptions:
    """Read decoder options from a JSON file."""
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise InputFileError(str(path), "decoder options file", e) from e
    except ValueError as e:
        raise ConfigurationError(f"{path}: invalid JSON: {e}") from e

    try:
        options = DecoderOptions.from_dict(data)
    except ConfigurationError as e:
        raise ConfigurationError(f"{path}: {e}") from e
    logger.debug(f"Decoder options from {path}: {options}")
    return options
