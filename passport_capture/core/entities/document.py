"""
Entity: Document fields

Structured holder data decoded from the MRZ. Pure model — no OCR or
framework dependency.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum


def _split_yymmdd(value: str) -> tuple[int, int, int] | None:
    if len(value) != 6 or not value.isdigit():
        return None
    return int(value[:2]), int(value[2:4]), int(value[4:6])


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_birth_date(value: str, today: date | None = None) -> date | None:
    """
    MRZ birth date YYMMDD → date.

    The 2000s are assumed unless that puts the birth after `today`, in which
    case the 1900s are used.
    """
    parts = _split_yymmdd(value)
    if parts is None:
        return None
    today = today or date.today()
    yy, mm, dd = parts
    year = 2000 + yy
    if year > today.year:
        year = 1900 + yy
    return _safe_date(year, mm, dd)


def parse_expiry_date(value: str, today: date | None = None, window_years: int = 20) -> date | None:
    """
    MRZ expiry date YYMMDD → date.

    The 2000s are assumed unless that puts the expiry more than
    `window_years` past `today`, in which case the 1900s are used.
    """
    parts = _split_yymmdd(value)
    if parts is None:
        return None
    today = today or date.today()
    yy, mm, dd = parts
    year = 2000 + yy
    if year > today.year + window_years:
        year = 1900 + yy
    return _safe_date(year, mm, dd)


class MRZFormat(str, Enum):
    TD3 = "TD3"
    TD1 = "TD1"


@dataclass(frozen=True)
class DocumentFields:
    """
    Decoded MRZ fields.

    Every populated field either passed its checksum / structural check or is
    named in `unverified`. Placeholder values are also named in `synthesized`.
    """
    document_type: str = ""
    issuing_country: str = ""
    surname: str = ""
    given_names: str = ""
    document_number: str = ""
    nationality: str = ""
    date_of_birth: str = ""      # YYMMDD
    sex: str = ""
    date_of_expiry: str = ""     # YYMMDD
    personal_number: str | None = None
    unverified: frozenset[str] = frozenset()
    synthesized: frozenset[str] = frozenset()

    @property
    def name(self) -> str:
        return " ".join(p for p in (self.surname, self.given_names) if p)

    def is_verified(self, field_name: str) -> bool:
        return field_name not in self.unverified

    def to_dict(self) -> dict:
        return {
            "documentType": self.document_type,
            "issuingCountry": self.issuing_country,
            "surname": self.surname,
            "givenNames": self.given_names,
            "name": self.name,
            "documentNumber": self.document_number,
            "nationality": self.nationality,
            "dateOfBirth": self.date_of_birth,
            "sex": self.sex,
            "dateOfExpiry": self.date_of_expiry,
            "personalNumber": self.personal_number,
            "unverified": sorted(self.unverified),
            "synthesized": sorted(self.synthesized),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DocumentFields":
        """Rebuild from the camelCase dict sent by a paired device."""
        surname = data.get("surname", "")
        given = data.get("givenNames", "")
        if not surname and not given and data.get("name"):
            surname = data["name"]
        values = {
            "document_type": data.get("documentType", ""),
            "issuing_country": data.get("issuingCountry", ""),
            "surname": surname,
            "given_names": given,
            "document_number": data.get("documentNumber", ""),
            "nationality": data.get("nationality", ""),
            "date_of_birth": data.get("dateOfBirth", ""),
            "sex": data.get("sex", ""),
            "date_of_expiry": data.get("dateOfExpiry", ""),
            "personal_number": data.get("personalNumber"),
        }
        # Fields coming from another device are never trusted as verified.
        unverified = frozenset(k for k, v in values.items() if v)
        return cls(**values, unverified=unverified)


FIELD_NAMES = (
    "document_type", "issuing_country", "surname", "given_names",
    "document_number", "nationality", "date_of_birth", "sex",
    "date_of_expiry", "personal_number",
)


@dataclass
class DecodeResult:
    """Outcome of one MRZ decode: whatever parsed plus the error list."""
    fields: DocumentFields | None
    format: MRZFormat | None = None
    lines: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    composite_verified: bool | None = None

    @property
    def ok(self) -> bool:
        return self.fields is not None and not self.errors
