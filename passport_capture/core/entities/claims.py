"""
Entity: Claims

Read-only projection of verified document data and the face match into the
predicates handed to proof generation.
"""

from dataclasses import dataclass
from datetime import date, timedelta

from passport_capture.core.entities.document import (
    DocumentFields,
    parse_birth_date,
    parse_expiry_date,
)
from passport_capture.core.entities.validation import FaceMatchResult


ADULT_AGE = 18
VALIDITY_WINDOW = timedelta(days=180)


@dataclass(frozen=True)
class Claims:
    adult: bool
    country_code: str
    valid_6_months: bool
    facial_match: bool
    face_match_score: float

    @property
    def clauses(self) -> list[str]:
        clauses = []
        if self.adult:
            clauses.append("adult:true")
        if self.country_code:
            clauses.append(f"country:{self.country_code}:true")
        if self.valid_6_months:
            clauses.append("validity_6m:true")
        if self.facial_match:
            clauses.append("facial_match:true")
        return clauses


def derive_claims(
    fields: DocumentFields,
    match: FaceMatchResult,
    today: date | None = None,
    expiry_window_years: int = 20,
) -> Claims:
    """
    Project decoded fields + face match into claims.

    Only fields that passed their checks count: an unverified or synthesized
    value never yields a true claim.
    """
    today = today or date.today()
    dob = None
    if fields.is_verified("date_of_birth"):
        dob = parse_birth_date(fields.date_of_birth, today=today)
    doe = None
    if fields.is_verified("date_of_expiry"):
        doe = parse_expiry_date(fields.date_of_expiry, today=today, window_years=expiry_window_years)

    adult = False
    if dob is not None:
        age = today.year - dob.year - ((today.month, today.day) < (dob.month, dob.day))
        adult = age >= ADULT_AGE

    valid_6m = doe is not None and (doe - today) > VALIDITY_WINDOW
    country = ""
    if fields.is_verified("issuing_country") and "issuing_country" not in fields.synthesized:
        country = fields.issuing_country.replace("<", "")

    return Claims(
        adult=adult,
        country_code=country,
        valid_6_months=valid_6m,
        facial_match=match.matched,
        face_match_score=match.score,
    )
