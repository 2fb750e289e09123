"""Student Learning Objective (SLO) code handling.

Curriculum documents reference objectives with codes such as ``B-11-B-27``
(subject, grade, domain, sequence).  Authors are inconsistent, so the same
objective shows up as ``[SLO: B-XI-B-27]``, ``B11B27`` or ``b 11 b 27``.
Everything is normalised to the hyphenated canonical form before it is used
as a retrieval key.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

SUBJECT_MAP: dict[str, str] = {
    "B": "Biology",
    "P": "Physics",
    "C": "Chemistry",
    "M": "Mathematics",
    "E": "English",
    "S": "Science",
    "CS": "Computer Science",
    "GS": "General Science",
    "U": "Urdu",
    "I": "Islamiat",
    "PS": "Pakistan Studies",
    "BIO": "Biology",
    "CHE": "Chemistry",
    "PHY": "Physics",
}

_ROMAN_GRADES: dict[str, str] = {"IX": "09", "X": "10", "XI": "11", "XII": "12"}

_ROMAN_RE = re.compile(r"[-.\s](XII|XI|IX|X)[-.\s]")

_SEP = r"\s*[-.\s]?\s*"
_CANONICAL_RE = re.compile(
    rf"([B-Z]){_SEP}(0?9|10|11|12){_SEP}([A-Z]){_SEP}(\d{{1,2}})",
    re.IGNORECASE,
)
_ANCHOR_RE = re.compile(
    rf"(?:SL[O0][:\-\s]*)?\b([B-Z]{_SEP}(?:0?9|10|11|12|XII|XI|IX|X){_SEP}[A-Z]{_SEP}\d{{1,2}})",
    re.IGNORECASE,
)
_GRADE_RE = re.compile(r"[A-Z]-(09|10|11|12)")

# [Subject(1)][Grade(2)][Domain(1)][Seq(1-4)], e.g. B09A01
_UNIVERSAL_RE = re.compile(r"^([A-Z])(\d{2})([A-Z])(\d{1,4})$")
# Subject(1-3) + Grade(1-2) + Domain(1) + Chapter(1-2) + Number(1-3)
_EXTENDED_RE = re.compile(r"^([A-Z]{1,3})(\d{1,2})([A-Z])(\d{1,2})(\d{1,3})$")
_STANDARD_RE = re.compile(r"^([A-Z]{1,3})(\d{1,2})([A-Z])(\d{1,3})$")


@dataclass(frozen=True)
class ParsedSLO:
    """Structured view of a single SLO code."""

    original: str
    subject: str
    subject_full: str
    grade: str
    domain: str
    number: int
    searchable: str


def normalize_slo(code: str) -> str:
    """Return the canonical ``S-GG-D-NN`` form of an SLO code.

    Codes that do not look like a grade 9-12 objective are upper-cased and
    have runs of whitespace/dots collapsed into hyphens.
    """
    if not code:
        return ""

    clean = re.sub(r"[–—]", "-", code)
    clean = re.sub(r"[\[\]:()]", "", clean).strip().upper()

    clean = _ROMAN_RE.sub(lambda m: f"-{_ROMAN_GRADES[m.group(1)]}-", clean)

    match = _CANONICAL_RE.search(clean)
    if match:
        subject, grade, domain, number = match.groups()
        return f"{subject.upper()}-{grade.zfill(2)}-{domain.upper()}-{number.zfill(2)}"

    return re.sub(r"[\s.]+", "-", clean)


def extract_slo_codes(text: str) -> list[str]:
    """Scan free text for SLO anchors; returns unique normalised codes in order."""
    if not text:
        return []

    seen: dict[str, None] = {}
    for match in _ANCHOR_RE.finditer(text):
        normalized = normalize_slo(match.group(1))
        if normalized:
            seen.setdefault(normalized, None)
    return list(seen)


def extract_grade_from_slo(normalized_code: str) -> str | None:
    match = _GRADE_RE.search(normalized_code or "")
    return match.group(1) if match else None


def parse_slo_code(code: str) -> ParsedSLO | None:
    """Decompose a code into subject / grade / domain / number, or ``None``."""
    if not code:
        return None

    clean = code.upper().replace("[", "").replace("]", "")
    clean = re.sub(r"^\s*SL[O0][:.\s-]*", "", clean)
    clean = re.sub(r"[:\s-]", "", clean)

    match = _UNIVERSAL_RE.match(clean)
    if match:
        subject, grade, domain, number = match.groups()
        return ParsedSLO(
            original=code,
            subject=subject,
            subject_full=SUBJECT_MAP.get(subject, subject),
            grade=grade,
            domain=domain,
            number=int(number),
            searchable=f"{subject}{grade}{domain}{number}",
        )

    match = _EXTENDED_RE.match(clean)
    if match:
        subject, grade, domain, _chapter, number = match.groups()
        return _padded(code, subject, grade, domain, number)

    match = _STANDARD_RE.match(clean)
    if match:
        subject, grade, domain, number = match.groups()
        return _padded(code, subject, grade, domain, number)

    return None


def _padded(original: str, subject: str, grade: str, domain: str, number: str) -> ParsedSLO:
    grade = grade.zfill(2)
    return ParsedSLO(
        original=original,
        subject=subject,
        subject_full=SUBJECT_MAP.get(subject, subject),
        grade=grade,
        domain=domain,
        number=int(number),
        searchable=f"{subject}{grade}{domain}{number}",
    )
