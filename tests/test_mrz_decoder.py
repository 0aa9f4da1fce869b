from datetime import date

import pytest

from passport_capture.core.entities.document import MRZFormat, parse_birth_date, parse_expiry_date
from passport_capture.core.errors import DecodeIncomplete
from passport_capture.infrastructure.rules.mrz_decoder import (
    MRZDecoder,
    filter_mrz_lines,
    mrz_check_digit,
    verify_check_digit,
)

from conftest import TD1_LINES, TD3_LINE1, TD3_LINE2, TD3_LINE2_QUOTED, TODAY


@pytest.fixture
def decoder() -> MRZDecoder:
    return MRZDecoder(today=TODAY)


def _with(line: str, start: int, value: str) -> str:
    return line[:start] + value + line[start + len(value):]


# ─── Check digits ──────────────────────────────────────

@pytest.mark.parametrize(
    "data,expected",
    [
        ("L898902C<", 3),
        ("690806", 1),
        ("940623", 6),
        ("ZE184226B<<<<<", 1),
        ("<<<<<<", 0),
    ],
)
def test_check_digit(data, expected):
    assert mrz_check_digit(data) == expected


def test_filler_check_digit_only_for_empty_field():
    assert verify_check_digit("<<<<<<<<<", "<")
    assert not verify_check_digit("AB1234567", "<")
    assert not verify_check_digit("AB1234567", "X")


# ─── TD3 ───────────────────────────────────────────────

def test_quoted_specimen_fails_composite_only(decoder):
    result = decoder.decode_td3(TD3_LINE1, TD3_LINE2_QUOTED)

    assert result.format is MRZFormat.TD3
    assert result.composite_verified is False
    assert result.fields.unverified == frozenset()
    assert len(result.errors) == 1
    assert result.errors[0].startswith("composite")


def test_corrected_specimen_decodes_cleanly(decoder):
    result = decoder.decode_td3(TD3_LINE1, TD3_LINE2)

    assert result.ok
    assert result.composite_verified is True
    f = result.fields
    assert f.document_type == "P"
    assert f.issuing_country == "UTO"
    assert f.surname == "ERIKSSON"
    assert f.given_names == "ANNA MARIA"
    assert f.name == "ERIKSSON ANNA MARIA"
    assert f.document_number == "L898902C"
    assert f.nationality == "UTO"
    assert f.date_of_birth == "690806"
    assert f.sex == "F"
    assert f.date_of_expiry == "940623"
    assert f.personal_number == "ZE184226B"


@pytest.mark.parametrize(
    "start,value,field_name",
    [
        (0, "L898912C<", "document_number"),
        (13, "690807", "date_of_birth"),
        (21, "940624", "date_of_expiry"),
        (28, "ZE184227B<<<<<", "personal_number"),
    ],
)
def test_single_corruption_flags_only_that_field(decoder, start, value, field_name):
    result = decoder.decode_td3(TD3_LINE1, _with(TD3_LINE2, start, value))

    assert result.fields.unverified == frozenset({field_name})
    assert any(e.startswith(field_name) for e in result.errors)
    # The value is kept even though it failed its check.
    assert value.replace("<", "") in getattr(result.fields, field_name)


def test_short_lines_are_padded_and_reported(decoder):
    result = decoder.decode_td3(TD3_LINE1[:40], TD3_LINE2)

    assert result.lines[0].endswith("<<<<")
    assert len(result.lines[0]) == 44
    assert any("line lengths" in e for e in result.errors)
    assert result.fields.surname == "ERIKSSON"


def test_invalid_sex_and_country_are_unverified(decoder):
    line2 = _with(_with(TD3_LINE2, 10, "U1O"), 20, "Q")
    result = decoder.decode_td3(TD3_LINE1, line2)

    assert "nationality" in result.fields.unverified
    assert "sex" in result.fields.unverified


def test_filler_sex_is_unspecified(decoder):
    result = decoder.decode_td3(TD3_LINE1, _with(TD3_LINE2, 20, "<"))
    assert result.fields.sex == "X"
    assert "sex" not in result.fields.unverified


# ─── TD1 ───────────────────────────────────────────────

def test_td1_specimen(decoder):
    result = decoder.decode_lines(TD1_LINES)

    assert result.format is MRZFormat.TD1
    assert result.composite_verified is True
    assert result.errors == []
    f = result.fields
    assert f.document_type == "I"
    assert f.document_number == "D23145890"
    assert f.date_of_birth == "740812"
    assert f.date_of_expiry == "120415"
    assert f.sex == "F"
    assert f.surname == "ERIKSSON"
    assert f.given_names == "ANNA MARIA"
    assert f.personal_number is None


# ─── Text filtering ────────────────────────────────────

def test_filter_drops_printed_text():
    raw = "\n".join([
        "PASSPORT",
        "REPUBLIC OF UTOPIA",
        "Surname / Nom ERIKSSON ANNA MARIA",
        TD3_LINE1.lower(),
        TD3_LINE2,
    ])
    assert filter_mrz_lines(raw) == [TD3_LINE1, TD3_LINE2]


def test_filter_strips_non_mrz_characters():
    assert filter_mrz_lines([" P<UTO ERIKSSON<<ANNA<MARIA<<<<<<<<<<<<<<<<<<<!"]) == [TD3_LINE1]


def test_decode_text_needs_two_lines(decoder):
    with pytest.raises(DecodeIncomplete):
        decoder.decode_text(["PASSPORT", TD3_LINE1])


def test_decode_text_picks_passport_pair(decoder):
    result = decoder.decode_text(["<<<<<<<<<<<<<<<<<<<<<<<<<<<<<<<<<<<<<<<<<<<<", TD3_LINE1, TD3_LINE2])
    assert result.format is MRZFormat.TD3
    assert result.fields.document_number == "L898902C"


# ─── Century inference ─────────────────────────────────

@pytest.mark.parametrize(
    "value,expected",
    [
        ("690806", date(1969, 8, 6)),
        ("250101", date(2025, 1, 1)),
        ("261019", date(2026, 10, 19)),
        ("270101", date(1927, 1, 1)),
        ("691306", None),
        ("69AB06", None),
    ],
)
def test_birth_century(value, expected):
    assert parse_birth_date(value, today=TODAY) == expected


@pytest.mark.parametrize(
    "value,expected",
    [
        ("940623", date(1994, 6, 23)),
        ("400101", date(2040, 1, 1)),
        ("461231", date(2046, 12, 31)),
        ("470101", date(1947, 1, 1)),
        ("000230", None),
    ],
)
def test_expiry_century(value, expected):
    assert parse_expiry_date(value, today=TODAY) == expected


def test_impossible_date_is_unverified(decoder):
    result = decoder.decode_td3(TD3_LINE1, _with(TD3_LINE2, 13, "691306"))
    assert "date_of_birth" in result.fields.unverified
