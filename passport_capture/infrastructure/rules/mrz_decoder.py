"""
MRZ Decoder.

Implements ICAO Doc 9303 (Machine Readable Travel Documents) decoding:
- Line filtering of raw OCR output
- TD3 (passport, 2 × 44) and TD1 (ID card, 3 × 30) fixed-offset layouts
- Check digit verification per field + composite
- Structural checks (country codes, dates, sex)

A field that fails its check is kept and flagged unverified; the decoder
never throws away what it managed to parse.
"""
import logging
import re
from datetime import date

from passport_capture.core.entities.document import (
    DecodeResult,
    DocumentFields,
    MRZFormat,
    parse_birth_date,
    parse_expiry_date,
)
from passport_capture.core.errors import DecodeIncomplete

logger = logging.getLogger(__name__)


# ── ICAO 9303 MRZ Character Weights ─────────────────────────────────
MRZ_CHAR_VALUES = {}
for i in range(10):
    MRZ_CHAR_VALUES[str(i)] = i
for i, c in enumerate("ABCDEFGHIJKLMNOPQRSTUVWXYZ"):
    MRZ_CHAR_VALUES[c] = 10 + i
MRZ_CHAR_VALUES["<"] = 0

MRZ_WEIGHTS = [7, 3, 1]
MRZ_CHARS = set(MRZ_CHAR_VALUES)

TD3_LINE_LENGTH = 44
TD1_LINE_LENGTH = 30

_SIX_DIGITS = re.compile(r"[0-9]{6}")
_COUNTRY = re.compile(r"^[A-Z<]{3}$")


def mrz_check_digit(data: str) -> int:
    """Calculate ICAO 9303 check digit (weights 7-3-1, mod 10)."""
    total = 0
    for i, char in enumerate(data):
        value = MRZ_CHAR_VALUES.get(char.upper(), 0)
        weight = MRZ_WEIGHTS[i % 3]
        total += value * weight
    return total % 10


def verify_check_digit(data: str, check_char: str) -> bool:
    """True when `check_char` is the check digit of `data`."""
    if check_char == "<":
        # Empty optional fields may carry a filler instead of a digit.
        return data.replace("<", "") == ""
    if not check_char.isdigit():
        return False
    return int(check_char) == mrz_check_digit(data)


def clean_mrz_line(text: str) -> str:
    """Clean OCR'd text to valid MRZ characters."""
    text = text.upper().replace(" ", "").strip()
    return "".join(c for c in text if c in MRZ_CHARS)


def clean_mrz_name(value: str) -> str:
    """'<' as separator, collapsed and upper-cased."""
    return re.sub(r"\s+", " ", value.replace("<", " ")).strip().upper()


def filter_mrz_lines(text: str | list[str], min_length: int = 25, max_length: int = 60) -> list[str]:
    """
    Keep OCR lines that look like MRZ lines.

    A line survives when its length is within bounds and it contains a
    filler or a 6-digit run (MRZ dates).
    """
    raw_lines = text.split("\n") if isinstance(text, str) else text
    kept = []
    for line in raw_lines:
        trimmed = line.strip().upper()
        if not (min_length <= len(trimmed) <= max_length):
            continue
        if "<" not in trimmed and not _SIX_DIGITS.search(trimmed):
            continue
        kept.append(clean_mrz_line(trimmed))
    return kept


def _fit(line: str, length: int) -> str:
    return line[:length].ljust(length, "<")


class MRZDecoder:
    """
    ICAO 9303 decoder for TD3 and TD1 layouts.

    `today` pins the reference date used for century inference (tests).
    """

    def __init__(
        self,
        min_line_length: int = 25,
        max_line_length: int = 60,
        expiry_window_years: int = 20,
        today: date | None = None,
    ):
        self._min_len = min_line_length
        self._max_len = max_line_length
        self._expiry_window = expiry_window_years
        self._today = today

    # ─── Public API ────────────────────────────────────────

    def decode_text(self, text: str | list[str]) -> DecodeResult:
        """
        Filter raw OCR output and decode it.

        Raises:
            DecodeIncomplete: fewer than 2 MRZ-like lines survived filtering.
        """
        lines = filter_mrz_lines(text, self._min_len, self._max_len)
        if len(lines) < 2:
            raise DecodeIncomplete(
                f"Expected at least 2 MRZ lines, found {len(lines)}"
            )
        return self.decode_lines(lines)

    def decode_lines(self, lines: list[str]) -> DecodeResult:
        """Pick the layout from the line shapes and decode."""
        lines = [clean_mrz_line(l) for l in lines if l.strip()]
        if len(lines) >= 3:
            tail = lines[-3:]
            if sum(len(l) for l in tail) / 3 <= TD1_LINE_LENGTH + 4:
                return self.decode_td1(*tail)
        if len(lines) < 2:
            return DecodeResult(fields=None, lines=lines, errors=["mrz: fewer than 2 lines"])

        l1, l2 = lines[-2], lines[-1]
        for i in range(len(lines) - 1):
            if lines[i].startswith("P"):
                l1, l2 = lines[i], lines[i + 1]
                break
        return self.decode_td3(l1, l2)

    def decode_td3(self, line1: str, line2: str) -> DecodeResult:
        """Decode a TD3 (passport) MRZ."""
        errors: list[str] = []
        unverified: set[str] = set()
        if len(line1) != TD3_LINE_LENGTH or len(line2) != TD3_LINE_LENGTH:
            errors.append(
                f"mrz: line lengths {len(line1)}/{len(line2)}, expected {TD3_LINE_LENGTH}"
            )
        l1 = _fit(line1, TD3_LINE_LENGTH)
        l2 = _fit(line2, TD3_LINE_LENGTH)

        surname, given = self._split_name(l1[5:])
        personal_raw = l2[28:42]

        fields = {
            "document_type": l1[0:2].replace("<", ""),
            "issuing_country": l1[2:5],
            "surname": surname,
            "given_names": given,
            "document_number": l2[0:9].replace("<", ""),
            "nationality": l2[10:13],
            "date_of_birth": l2[13:19],
            "sex": self._normalize_sex(l2[20]),
            "date_of_expiry": l2[21:27],
            "personal_number": personal_raw.replace("<", "") or None,
        }

        checks = [
            ("document_number", l2[0:9], l2[9]),
            ("date_of_birth", l2[13:19], l2[19]),
            ("date_of_expiry", l2[21:27], l2[27]),
            ("personal_number", personal_raw, l2[42]),
        ]
        self._run_checks(checks, unverified, errors)
        self._run_structural(fields, unverified, errors)

        composite_ok = verify_check_digit(l2[0:10] + l2[13:20] + l2[21:43], l2[43])
        if not composite_ok:
            errors.append(f"composite: check digit mismatch (got {l2[43]})")

        return DecodeResult(
            fields=DocumentFields(**fields, unverified=frozenset(unverified)),
            format=MRZFormat.TD3,
            lines=[l1, l2],
            errors=errors,
            composite_verified=composite_ok,
        )

    def decode_td1(self, line1: str, line2: str, line3: str) -> DecodeResult:
        """Decode a TD1 (ID card) MRZ."""
        errors: list[str] = []
        unverified: set[str] = set()
        if any(len(l) != TD1_LINE_LENGTH for l in (line1, line2, line3)):
            errors.append(f"mrz: TD1 line lengths differ from {TD1_LINE_LENGTH}")
        l1 = _fit(line1, TD1_LINE_LENGTH)
        l2 = _fit(line2, TD1_LINE_LENGTH)
        l3 = _fit(line3, TD1_LINE_LENGTH)

        surname, given = self._split_name(l3)
        optional_raw = l1[15:30]

        fields = {
            "document_type": l1[0:2].replace("<", ""),
            "issuing_country": l1[2:5],
            "surname": surname,
            "given_names": given,
            "document_number": l1[5:14].replace("<", ""),
            "nationality": l2[15:18],
            "date_of_birth": l2[0:6],
            "sex": self._normalize_sex(l2[7]),
            "date_of_expiry": l2[8:14],
            "personal_number": optional_raw.replace("<", "") or None,
        }

        checks = [
            ("document_number", l1[5:14], l1[14]),
            ("date_of_birth", l2[0:6], l2[6]),
            ("date_of_expiry", l2[8:14], l2[14]),
        ]
        self._run_checks(checks, unverified, errors)
        self._run_structural(fields, unverified, errors)

        composite_ok = verify_check_digit(l1[5:30] + l2[0:7] + l2[8:15] + l2[18:29], l2[29])
        if not composite_ok:
            errors.append(f"composite: check digit mismatch (got {l2[29]})")

        return DecodeResult(
            fields=DocumentFields(**fields, unverified=frozenset(unverified)),
            format=MRZFormat.TD1,
            lines=[l1, l2, l3],
            errors=errors,
            composite_verified=composite_ok,
        )

    # ─── Internals ─────────────────────────────────────────

    @staticmethod
    def _split_name(section: str) -> tuple[str, str]:
        parts = section.split("<<", 1)
        surname = clean_mrz_name(parts[0])
        given = clean_mrz_name(parts[1]) if len(parts) > 1 else ""
        return surname, given

    @staticmethod
    def _normalize_sex(value: str) -> str:
        return "X" if value == "<" else value

    @staticmethod
    def _run_checks(checks, unverified: set[str], errors: list[str]) -> None:
        for name, data, check_char in checks:
            if name == "personal_number" and data.replace("<", "") == "" and check_char in "<0":
                continue
            if not verify_check_digit(data, check_char):
                unverified.add(name)
                errors.append(
                    f"{name}: check digit mismatch (got {check_char}, expected {mrz_check_digit(data)})"
                )

    def _run_structural(self, fields: dict, unverified: set[str], errors: list[str]) -> None:
        today = self._today or date.today()

        for name in ("issuing_country", "nationality"):
            value = fields[name]
            if not _COUNTRY.match(value) or value == "<<<":
                unverified.add(name)
                errors.append(f"{name}: invalid country code '{value}'")

        if not fields["document_type"] or not fields["document_type"].isalpha():
            unverified.add("document_type")
            errors.append(f"document_type: invalid value '{fields['document_type']}'")

        if fields["sex"] not in ("M", "F", "X"):
            unverified.add("sex")
            errors.append(f"sex: invalid value '{fields['sex']}'")

        if parse_birth_date(fields["date_of_birth"], today=today) is None:
            if "date_of_birth" not in unverified:
                errors.append(f"date_of_birth: not a valid date '{fields['date_of_birth']}'")
            unverified.add("date_of_birth")

        doe = parse_expiry_date(
            fields["date_of_expiry"], today=today, window_years=self._expiry_window
        )
        if doe is None:
            if "date_of_expiry" not in unverified:
                errors.append(f"date_of_expiry: not a valid date '{fields['date_of_expiry']}'")
            unverified.add("date_of_expiry")

        if not fields["surname"]:
            unverified.add("surname")
            errors.append("surname: missing")
