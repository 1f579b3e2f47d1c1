"""Tests for settings sanitization."""

import json
from datetime import datetime

import pytest

from helmet_check.settings import (
    generate_project_name,
    sanitize_optional_date,
    sanitize_optional_location,
    sanitize_settings,
)


def test_valid_settings_are_kept(settings):
    payload = json.dumps(
        {
            "projectTag": "North Gate",
            "confidence": 0.6,
            "geminiWeight": 0.5,
            "maxFileSize": 800,
            "maxWidth": 1280,
            "maxHeight": 720,
            "outputFormat": "pdf",
        }
    )
    result = sanitize_settings(payload, settings)
    assert result.project_tag == "North Gate"
    assert result.confidence == 0.6
    assert result.gemini_weight == 0.5
    assert result.max_file_size == 800
    assert result.max_width == 1280
    assert result.max_height == 720
    # untouched fields keep their defaults
    assert result.grok_prompt == settings.grok_prompt


@pytest.mark.parametrize(
    "key, value, attr",
    [
        ("confidence", 1.5, "confidence"),
        ("confidence", 0.01, "confidence"),
        ("geminiWeight", -0.1, "gemini_weight"),
        ("grokWeight", 2, "grok_weight"),
        ("maxFileSize", 20, "max_file_size"),
        ("maxFileSize", 20000, "max_file_size"),
        ("maxWidth", 100, "max_width"),
        ("maxHeight", 99999, "max_height"),
    ],
)
def test_out_of_range_falls_back_to_default(settings, key, value, attr):
    result = sanitize_settings({key: value}, settings)
    assert getattr(result, attr) == getattr(settings, attr)


@pytest.mark.parametrize("value", [True, "abc", None, [0.7], {"v": 0.7}, float("nan")])
def test_wrong_type_falls_back_to_default(settings, value):
    result = sanitize_settings({"confidence": value}, settings)
    assert result.confidence == settings.confidence


def test_numeric_strings_are_accepted(settings):
    result = sanitize_settings({"confidence": "0.5", "maxWidth": "2000"}, settings)
    assert result.confidence == 0.5
    assert result.max_width == 2000


def test_fractional_pixel_size_falls_back(settings):
    result = sanitize_settings({"maxWidth": 1280.5}, settings)
    assert result.max_width == settings.max_width


@pytest.mark.parametrize(
    "payload",
    [
        "{not json",
        "",
        "[1, 2]",
        "42",
        "null",
        None,
        12,
        pytest.param(json.dumps({"maxFileSize": int("9" * 400)}), id="huge-integer"),
        pytest.param("[" * 100000, id="deeply-nested"),
    ],
)
def test_malformed_payload_returns_defaults(settings, payload):
    assert sanitize_settings(payload, settings) == settings


def test_string_fields_are_filtered(settings):
    result = sanitize_settings({"projectTag": "  <script>Site#1</script> "}, settings)
    assert result.project_tag == "scriptSite1script"


def test_control_whitespace_is_removed(settings):
    result = sanitize_settings({"projectTag": "Gate\n4\t"}, settings)
    assert result.project_tag == "Gate4"
    assert sanitize_optional_location("Block\r\nA") == "BlockA"


def test_string_field_empty_after_filtering_falls_back(settings):
    result = sanitize_settings({"projectTag": "!!!", "geminiPrompt": 5}, settings)
    assert result.project_tag == settings.project_tag
    assert result.gemini_prompt == settings.gemini_prompt


def test_unsupported_output_format_falls_back(settings):
    assert sanitize_settings({"outputFormat": "docx"}, settings).output_format == "pdf"


def test_sanitize_optional_date():
    assert sanitize_optional_date("1700000000000") == 1700000000000.0
    assert sanitize_optional_date("0") == 0.0
    assert sanitize_optional_date("-5") is None
    assert sanitize_optional_date("yesterday") is None
    assert sanitize_optional_date("inf") is None
    assert sanitize_optional_date("") is None
    assert sanitize_optional_date(None) is None


def test_sanitize_optional_location():
    assert sanitize_optional_location(" Main St. 5, Block A/2 ") == "Main St. 5, Block A/2"
    assert sanitize_optional_location("Site <b>7</b>") == "Site b7/b"
    assert sanitize_optional_location("@@@") is None
    assert sanitize_optional_location(None) is None


def test_generate_project_name():
    now = datetime(2024, 12, 14, 15, 30, 45)
    assert generate_project_name("API", now) == "241214-153045-API"
