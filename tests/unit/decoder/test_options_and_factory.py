"""Unit tests for DecoderOptions and DecoderFactory."""

import json
import math

import numpy as np
import pytest
from pydantic import ValidationError

from chunkscribe.core.exceptions import ConfigurationError, InputFileError, LexiconError
from chunkscribe.decoder import (
    CriterionType,
    DecoderFactory,
    DecoderOptions,
    DecoderSession,
    Lexicon,
    SmearingMode,
    TokenSet,
    ZeroLanguageModel,
    load_decoder_options,
)


@pytest.fixture
def options_dict(toy_asr):
    return dict(toy_asr.decoder_options)


class TestDecoderOptionsFromDict:
    """Test DecoderOptions.from_dict() validation."""

    def test_valid_options(self, options_dict):
        """Test every field is read and converted."""
        options = DecoderOptions.from_dict(options_dict)
        assert options.beam_size == 10
        assert options.beam_size_token == 5
        assert options.beam_threshold == 25.0
        assert options.word_score == 1.0
        assert options.unk_score == -math.inf
        assert options.log_add is False
        assert options.criterion_type is CriterionType.CTC

    @pytest.mark.parametrize("field", ["beamSize", "lmWeight", "logAdd", "criterionType"])
    def test_missing_field(self, options_dict, field):
        """Test a missing field is named in the error."""
        del options_dict[field]
        with pytest.raises(ConfigurationError, match=field):
            DecoderOptions.from_dict(options_dict)

    @pytest.mark.parametrize(
        "field, value",
        [
            ("beamSize", 10.5),
            ("beamSize", "10"),
            ("beamSize", True),
            ("lmWeight", "0.5"),
            ("lmWeight", False),
            ("logAdd", 0),
            ("silScore", None),
        ],
    )
    def test_wrong_type(self, options_dict, field, value):
        """Test a mistyped field is named in the error."""
        options_dict[field] = value
        with pytest.raises(ConfigurationError, match=field):
            DecoderOptions.from_dict(options_dict)

    def test_int_accepted_for_float_fields(self, options_dict):
        """Test integer JSON numbers are accepted for float fields."""
        options_dict["lmWeight"] = 2
        assert DecoderOptions.from_dict(options_dict).lm_weight == 2.0

    @pytest.mark.parametrize(
        "value, expected",
        [("CTC", CriterionType.CTC), ("asg", CriterionType.ASG), (0, CriterionType.ASG), (1, CriterionType.CTC)],
    )
    def test_criterion_type_forms(self, options_dict, value, expected):
        """Test the criterion is given by name in any case or by integer code."""
        options_dict["criterionType"] = value
        assert DecoderOptions.from_dict(options_dict).criterion_type is expected

    @pytest.mark.parametrize("value", ["seq2seq", 7, True, 1.0])
    def test_bad_criterion_type(self, options_dict, value):
        """Test unknown names, codes and other types are rejected."""
        options_dict["criterionType"] = value
        with pytest.raises(ConfigurationError, match="criterionType"):
            DecoderOptions.from_dict(options_dict)

    def test_beam_sizes_must_be_positive(self, options_dict):
        """Test a zero beam size is rejected."""
        options_dict["beamSizeToken"] = 0
        with pytest.raises(ConfigurationError, match=r"beamSizeToken: .*greater than 0"):
            DecoderOptions.from_dict(options_dict)

    def test_unknown_key_warns(self, options_dict, caplog):
        """Test unknown keys are logged and otherwise ignored."""
        options_dict["beamWidth"] = 3
        DecoderOptions.from_dict(options_dict)
        assert "Ignoring unknown decoder option: beamWidth" in caplog.text

    def test_not_an_object(self):
        """Test a JSON array is not accepted as options."""
        with pytest.raises(ConfigurationError, match="object"):
            DecoderOptions.from_dict([1, 2, 3])

    def test_to_dict_uses_json_names(self, options_dict):
        """Test to_dict() produces the camelCase layout it was read from."""
        assert DecoderOptions.from_dict(options_dict).to_dict()["criterionType"] == "CTC"
        assert set(DecoderOptions.from_dict(options_dict).to_dict()) == set(options_dict)

    def test_nan_rejected(self, options_dict):
        """Test NaN is not a usable score."""
        options_dict["wordScore"] = float("nan")
        with pytest.raises(ConfigurationError, match="wordScore"):
            DecoderOptions.from_dict(options_dict)

    def test_options_are_frozen(self, options_dict):
        """Test options cannot be changed once built."""
        options = DecoderOptions.from_dict(options_dict)
        with pytest.raises(ValidationError):
            options.beam_size = 3

    def test_build_by_field_name(self):
        """Test options can also be built from Python field names."""
        options = DecoderOptions(
            beam_size=4,
            beam_size_token=2,
            beam_threshold=10,
            lm_weight=0.0,
            word_score=0.0,
            unk_score=-math.inf,
            sil_score=0.0,
            eos_score=0.0,
            log_add=True,
            criterion_type="asg",
        )
        assert (options.beam_size, options.criterion_type) == (4, CriterionType.ASG)


class TestLoadDecoderOptions:
    """Test reading options from JSON files."""

    def test_load(self, tmp_path, options_dict):
        """Test options load from a JSON file."""
        path = tmp_path / "decoder_options.json"
        path.write_text(json.dumps(options_dict), encoding="utf-8")
        assert load_decoder_options(path).beam_size == 10

    def test_negative_infinity_literal(self, tmp_path, options_dict):
        """Test the -Infinity literal is accepted for unkScore."""
        options_dict.pop("unkScore")
        body = json.dumps(options_dict)[:-1] + ', "unkScore": -Infinity}'
        path = tmp_path / "decoder_options.json"
        path.write_text(body, encoding="utf-8")
        assert load_decoder_options(path).unk_score == -math.inf

    def test_missing_beam_size_names_file(self, tmp_path, options_dict):
        """Test field errors are prefixed with the file path."""
        del options_dict["beamSize"]
        path = tmp_path / "decoder_options.json"
        path.write_text(json.dumps(options_dict), encoding="utf-8")
        with pytest.raises(ConfigurationError, match=r"decoder_options\.json: .*beamSize"):
            load_decoder_options(path)

    def test_invalid_json(self, tmp_path):
        """Test a syntax error is a configuration error."""
        path = tmp_path / "decoder_options.json"
        path.write_text("{beamSize: 1", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="invalid JSON"):
            load_decoder_options(path)

    def test_missing_file(self, tmp_path):
        """Test a missing file is an input file error."""
        with pytest.raises(InputFileError):
            load_decoder_options(tmp_path / "absent.json")


class TestDecoderFactory:
    """Test DecoderFactory construction and session creation."""

    @pytest.fixture
    def tokens(self, toy_asr):
        return TokenSet(toy_asr.tokens)

    def test_from_files(self, model_files):
        """Test the factory loads tokens, lexicon and LM from disk."""
        factory = DecoderFactory.from_files(
            tokens_file=model_files.path("tokens_file"),
            lexicon_file=model_files.path("lexicon_file"),
            language_model_file=model_files.path("language_model_file"),
        )
        assert len(factory.tokens) == 14
        assert len(factory.lexicon) == 6
        assert factory.silence_id == 0
        assert factory.blank_id == 1
        assert factory.smearing is SmearingMode.MAX
        # unigram scores are all -1, so MAX smearing gives -1 everywhere
        assert factory.trie.root.max_score == pytest.approx(-1.0)

    def test_from_files_without_language_model(self, model_files):
        """Test an empty LM path decodes without a language model."""
        factory = DecoderFactory.from_files(
            tokens_file=model_files.path("tokens_file"),
            lexicon_file=model_files.path("lexicon_file"),
            language_model_file="",
        )
        assert isinstance(factory.language_model, ZeroLanguageModel)

    def test_missing_silence_token(self, tokens):
        """Test a silence token outside the token set is a lexicon error."""
        with pytest.raises(LexiconError, match=r"silence token '\|'"):
            DecoderFactory(tokens, Lexicon({}), ZeroLanguageModel(), silence_token="|")

    def test_lexicon_checked_against_tokens(self, tokens):
        """Test lexicon token ids must exist in the token set."""
        with pytest.raises(LexiconError):
            DecoderFactory(tokens, Lexicon({"x": [[99]]}), ZeroLanguageModel())

    def test_transitions_shape(self, tokens):
        """Test ASG transitions must be (tokens, tokens)."""
        with pytest.raises(ConfigurationError, match="transitions"):
            DecoderFactory(tokens, Lexicon({}), ZeroLanguageModel(), transitions=np.zeros((3, 3)))

    def test_sessions_are_independent(self, tokens, toy_asr):
        """Test finalizing one session leaves another untouched."""
        factory = DecoderFactory(tokens, Lexicon({}), ZeroLanguageModel())
        options = DecoderOptions.from_dict(toy_asr.decoder_options)
        first = factory.create_session(options)
        second = factory.create_session(options)

        assert isinstance(first, DecoderSession)
        first.step(toy_asr.emissions_for_frames([0, 0, 0]))
        first.finalize()
        assert second.frames_decoded == 0
        second.step(toy_asr.emissions_for_frames([0]))
