"""Tests for result normalization."""

import pytest

from icarebridge.normalize import ResultNormalizer, parse_json_fields
from icarebridge.runtime.values import GuestMap, GuestSequence, decode_tagged
from icarebridge.utils.exceptions import ResultFormatError


def test_nested_guest_structures_become_plain_data():
    raw = GuestMap(
        (
            ("model", GuestMap((("family_history", 0.26),))),
            ("reference_risks", GuestSequence((GuestMap((("age_interval_start", 50),)),))),
            ("method", "iCARE - absolute risk"),
        )
    )
    assert ResultNormalizer().normalize(raw) == {
        "model": {"family_history": 0.26},
        "reference_risks": [{"age_interval_start": 50}],
        "method": "iCARE - absolute risk",
    }


def test_leaves_are_unchanged():
    normalizer = ResultNormalizer()
    for leaf in (None, True, 3, 0.5, "text"):
        assert normalizer.normalize(leaf) == leaf


def test_non_string_keys_survive():
    raw = decode_tagged({"$map": [[1, "a"], [2.5, {"$seq": [1, 2]}]]})
    assert ResultNormalizer().normalize(raw) == {1: "a", 2.5: [1, 2]}


def test_normalize_is_idempotent():
    normalizer = ResultNormalizer()
    once = normalizer.normalize(GuestMap((("a", GuestSequence((1, GuestMap((("b", None),))))),)))
    assert normalizer.normalize(once) == once


def test_parse_json_fields_replaces_text():
    result = {"profile": '[{"id": 1, "risk_estimates": 0.02}]', "method": "x"}
    parsed = parse_json_fields(result, ("profile",))
    assert parsed is result
    assert result["profile"] == [{"id": 1, "risk_estimates": 0.02}]


def test_parse_json_fields_ignores_absent_or_parsed():
    result = {"profile": [{"id": 1}]}
    assert parse_json_fields(result, ("profile", "other")) == {"profile": [{"id": 1}]}
    assert parse_json_fields([1, 2], ("profile",)) == [1, 2]


def test_parse_json_fields_invalid_json():
    with pytest.raises(ResultFormatError) as exc:
        parse_json_fields({"profile": "{not json"}, ("profile",))
    assert exc.value.code == "RESULT_FORMAT_ERROR"
    assert exc.value.details == {"field": "profile"}
