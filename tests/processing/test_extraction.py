"""Tests for profile extraction from free-form text."""

import pytest

from pagewire.processing.extraction import (
    ExtractedProfile,
    extract_email,
    extract_location,
    extract_name,
    extract_phone,
    extract_profile,
)


class TestExtractName:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Hi, my name is Jane Doe", "Jane Doe"),
            ("My name's Carlos", "Carlos"),
            ("hello, I'm Ana Maria Lopez and I need help", "Ana Maria Lopez"),
            ("This is Omar from the bakery", "Omar"),
            ("call me Bob", "Bob"),
            ("my name is jane doe", "Jane Doe"),
            ("hi there, my name is carlos and i need a cake", "Carlos"),
            ("MY NAME IS ANA", "ANA"),
        ],
    )
    def test_introductions(self, text, expected):
        assert extract_name(text) == expected

    @pytest.mark.parametrize(
        "text",
        [
            "I am interested in your prices",
            "I'm Interested in a cake",
            "my name is",
            "what time do you open?",
            "i'm good thanks",
            "please call me back",
        ],
    )
    def test_non_names(self, text):
        assert extract_name(text) is None


class TestExtractContact:
    def test_email_is_lowercased(self):
        assert extract_email("write to Jane.Doe@Example.com please") == "jane.doe@example.com"

    def test_no_email(self):
        assert extract_email("jane at example dot com") is None

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("call me at +1 (415) 555-0199", "+14155550199"),
            ("my number: 0412 345 678", "0412345678"),
            ("555-0199-22", "555019922"),
        ],
    )
    def test_phone_numbers_are_normalized(self, text, expected):
        assert extract_phone(text) == expected

    @pytest.mark.parametrize(
        "text",
        ["order 12345", "it costs 100.50", "see you at 10-12"],
    )
    def test_short_numbers_are_not_phones(self, text):
        assert extract_phone(text) is None

    def test_location(self):
        assert extract_location("I live in San Francisco, California") == (
            "San Francisco, California"
        )
        assert extract_location("I'm based in Madrid.") == "Madrid"
        assert extract_location("I live in a flat") is None


class TestExtractProfile:
    def test_full_introduction(self):
        profile = extract_profile(
            "My name is Jane Doe, email jane@example.com, phone +1 415 555 0199. "
            "I live in Austin"
        )

        assert profile == ExtractedProfile(
            name="Jane Doe",
            phone="+14155550199",
            email="jane@example.com",
            location="Austin",
        )
        assert not profile.is_empty

    def test_nothing_found(self):
        profile = extract_profile("do you deliver on sundays?")

        assert profile.is_empty
        assert profile.to_fields() == {
            "name": None,
            "phone": None,
            "email": None,
            "location": None,
        }

    @pytest.mark.parametrize("text", [None, ""])
    def test_empty_text(self, text):
        assert extract_profile(text).is_empty
