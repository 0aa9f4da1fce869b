from dataclasses import replace

import pytest

from passport_capture.core.entities.claims import derive_claims
from passport_capture.core.entities.document import DocumentFields
from passport_capture.core.entities.validation import FaceMatchResult
from passport_capture.infrastructure.rules.mrz_decoder import MRZDecoder

from conftest import TD3_LINE1, TD3_LINE2, TODAY

MATCH = FaceMatchResult(score=0.82, threshold=0.70)
NO_MATCH = FaceMatchResult(score=0.55, threshold=0.70)

FIELDS = DocumentFields(
    document_type="P",
    issuing_country="UTO",
    surname="ERIKSSON",
    given_names="ANNA MARIA",
    document_number="L898902C",
    nationality="UTO",
    date_of_birth="690806",
    sex="F",
    date_of_expiry="300101",
)


def test_all_claims_hold():
    claims = derive_claims(FIELDS, MATCH, today=TODAY)

    assert claims.adult
    assert claims.country_code == "UTO"
    assert claims.valid_6_months
    assert claims.facial_match
    assert claims.face_match_score == 0.82
    assert claims.clauses == ["adult:true", "country:UTO:true", "validity_6m:true", "facial_match:true"]


@pytest.mark.parametrize("dob,adult", [("081019", True), ("081020", False), ("000000", False)])
def test_adult_on_birthday(dob, adult):
    assert derive_claims(replace(FIELDS, date_of_birth=dob), MATCH, today=TODAY).adult is adult


@pytest.mark.parametrize(
    "doe,valid",
    [
        ("300101", True),
        ("270301", False),    # expires in under six months
        ("940623", False),    # expired in 1994
        ("000000", False),
    ],
)
def test_six_month_validity(doe, valid):
    assert derive_claims(replace(FIELDS, date_of_expiry=doe), MATCH, today=TODAY).valid_6_months is valid


def test_failed_match_drops_clause():
    claims = derive_claims(FIELDS, NO_MATCH, today=TODAY)
    assert not claims.facial_match
    assert "facial_match:true" not in claims.clauses


def test_placeholder_country_is_not_claimed():
    fields = replace(FIELDS, issuing_country="XXX", synthesized=frozenset({"issuing_country"}))
    claims = derive_claims(fields, MATCH, today=TODAY)
    assert claims.country_code == ""
    assert not any(c.startswith("country:") for c in claims.clauses)


@pytest.mark.parametrize(
    "field_name,attribute",
    [
        ("date_of_birth", "adult"),
        ("date_of_expiry", "valid_6_months"),
    ],
)
def test_unverified_dates_are_not_claimed(field_name, attribute):
    fields = replace(FIELDS, unverified=frozenset({field_name}))
    claims = derive_claims(fields, MATCH, today=TODAY)
    assert getattr(claims, attribute) is False


def test_unverified_country_is_not_claimed():
    fields = replace(FIELDS, unverified=frozenset({"issuing_country"}))
    claims = derive_claims(fields, MATCH, today=TODAY)
    assert claims.country_code == ""
    assert claims.clauses == ["adult:true", "validity_6m:true", "facial_match:true"]


def test_birth_date_failing_its_check_digit_is_not_claimed():
    # 690806 -> 080806 with the original check digit left in place.
    line2 = TD3_LINE2[:13] + "080806" + TD3_LINE2[19:]
    decoded = MRZDecoder(today=TODAY).decode_td3(TD3_LINE1, line2)

    assert "date_of_birth" in decoded.fields.unverified
    assert derive_claims(decoded.fields, MATCH, today=TODAY).adult is False
