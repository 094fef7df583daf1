"""
Tests for per-field domain rules.
"""

import pytest

from careprofile.services.validator import (
    validate_care_types,
    validate_field,
    validate_hourly_rate,
    validate_languages,
    validate_location,
    validate_profile_picture_url,
    validate_years_of_experience,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("$30/hr", "$30/hour"),
        ("$30", "$30/hour"),
        ("30 dollars an hour", "$30/hour"),
        ("$22.50/hour", "$22.5/hour"),
        ("$10/hr", "$10/hour"),
        ("$200/hr", "$200/hour"),
    ],
)
def test_hourly_rate_canonical_form(raw, expected):
    result = validate_hourly_rate(raw)
    assert result.ok
    assert result.value == expected


@pytest.mark.parametrize("raw", ["$5/hr", "$500/hr", "$9.99", "depends", ""])
def test_hourly_rate_rejected(raw):
    result = validate_hourly_rate(raw)
    assert not result.ok
    assert result.error


def test_hourly_rate_bounds_message():
    assert validate_hourly_rate("$5/hr").error == "Hourly rate must be between $10 and $200"


def test_location_rules():
    assert validate_location("  Denver  ").value == "Denver"
    assert validate_location("NY").ok
    assert not validate_location("D").ok
    assert not validate_location("   ").ok


def test_list_rules_require_one_real_entry():
    assert validate_languages(["English", " Spanish "]).value == ["English", "Spanish"]
    assert not validate_languages([]).ok
    assert not validate_care_types(["", "n/a"]).ok
    assert validate_care_types(["infant care"]).ok


def test_years_of_experience_rules():
    assert validate_years_of_experience({"infant": 5, "toddler": 2.5}).ok
    assert validate_years_of_experience({"infant": 0}).ok
    assert not validate_years_of_experience({}).ok
    assert not validate_years_of_experience({"infant": -1}).ok
    assert not validate_years_of_experience({"infant": 81}).ok
    assert not validate_years_of_experience({"infant": True}).ok
    assert not validate_years_of_experience({"infant": "lots"}).ok


def test_profile_picture_url_rules():
    assert validate_profile_picture_url("https://example.com/me.png").ok
    assert validate_profile_picture_url("http://example.com/me.png").ok
    assert not validate_profile_picture_url("ftp://example.com/me.png").ok
    assert not validate_profile_picture_url("me.png").ok


def test_validate_field_checks_kind_before_rule():
    result = validate_field("languages", "English")
    assert not result.ok
    assert "string list" in result.error


def test_validate_field_unknown_and_placeholder():
    assert not validate_field("favorite_color", "blue").ok
    assert not validate_field("commute_type", "N/A").ok


def test_validate_field_without_rule_normalizes():
    assert validate_field("commute_type", "  bus  ").value == "bus"
    assert validate_field("qualifications", ["CPR", "", "First Aid"]).value == ["CPR", "First Aid"]
    assert validate_field("hourly_rate", "$30/hr").value == "$30/hour"
