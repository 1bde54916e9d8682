"""Canonical content encoding for academic documents.

The canonical encoding is the only input to a document's identity hash.
Two submissions carrying the same structured fields encode to identical
text regardless of container format (PDF, Word template, image) or of
the key style the caller used.

Output layout, one ``KEY:VALUE`` per line::

    DOCUMENT_TYPE:<type>
    STUDENT_ID:<id>
    STUDENT_NAME:<name>
    INSTITUTION:<institution>
    DATE_ISSUED:<ISO-8601 UTC, millisecond precision>
    COURSES:
    1. <code> - <name> (<units> units) - Grade: <grade>
    GRADES:
    <subject>: <grade>

The COURSES and GRADES blocks are omitted entirely when empty.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Mapping

from adis.integrity.hashing import keccak256


@dataclass(frozen=True)
class CourseLine:
    """One course row on a transcript-like document."""

    code: str
    name: str
    units: Any = None
    grade: Any = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CourseLine":
        return cls(
            code=str(data.get("courseCode", data.get("code", "")) or ""),
            name=str(data.get("courseName", data.get("name", data.get("title", ""))) or ""),
            units=data.get("units"),
            grade=data.get("grade"),
        )

    def render(self, position: int) -> str:
        line = f"{position}. {self.code} - {self.name}"
        if _present(self.units):
            line += f" ({_format_scalar(self.units)} units)"
        if _present(self.grade):
            line += f" - Grade: {_format_scalar(self.grade)}"
        return line


@dataclass(frozen=True)
class DocumentData:
    """Structured issuance fields that determine a document's identity."""

    document_type: str
    student_id: str
    student_name: str
    date_issued: Any
    institution: str = ""
    courses: tuple[CourseLine, ...] = field(default_factory=tuple)
    grades: tuple[tuple[str, Any], ...] = field(default_factory=tuple)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DocumentData":
        """Build from a request payload or template data dict.

        Accepts camelCase keys (``studentId``, ``courseData``) as well as
        snake_case/template keys (``student_id``, ``courses``).
        """
        courses_raw = data.get("courseData", data.get("courses")) or []
        grades_raw = data.get("grades") or {}
        return cls(
            document_type=str(_first(data, "documentType", "document_type", default="")),
            student_id=str(_first(data, "studentId", "student_id", default="")),
            student_name=str(_first(data, "studentName", "student_name", "fullName", default="")),
            date_issued=_first(data, "dateIssued", "date_issued", "issueDate", default=None),
            institution=str(_first(data, "institution", "institutionName", default="") or ""),
            courses=tuple(
                c if isinstance(c, CourseLine) else CourseLine.from_mapping(c)
                for c in courses_raw
            ),
            grades=tuple(grades_raw.items()) if isinstance(grades_raw, Mapping) else tuple(grades_raw),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "document_type": self.document_type,
            "student_id": self.student_id,
            "student_name": self.student_name,
            "institution": self.institution,
            "date_issued": normalize_date(self.date_issued),
            "courses": [
                {"code": c.code, "name": c.name, "units": c.units, "grade": c.grade}
                for c in self.courses
            ],
            "grades": dict(self.grades),
        }


def normalize_date(value: Any) -> str:
    """Normalise a date to ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC.

    Accepts ``datetime``, ``date`` or ISO-8601 strings (a trailing ``Z``
    is allowed). Naive values are taken to be UTC.

    Raises:
        ValueError: If a string cannot be parsed.
        TypeError: For any other input type.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError(f"Unrecognised date: {value!r}") from exc
    else:
        raise TypeError(f"Unsupported date value: {value!r}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def encode(document: DocumentData | Mapping[str, Any]) -> str:
    """Return the canonical text encoding of *document*.

    Raises:
        ValueError: If any value contains a line break.
    """
    if not isinstance(document, DocumentData):
        document = DocumentData.from_mapping(document)

    lines = [
        f"DOCUMENT_TYPE:{document.document_type}",
        f"STUDENT_ID:{document.student_id}",
        f"STUDENT_NAME:{document.student_name}",
        f"INSTITUTION:{document.institution}",
        f"DATE_ISSUED:{normalize_date(document.date_issued)}",
    ]

    if document.courses:
        lines.append("COURSES:")
        lines.extend(course.render(i) for i, course in enumerate(document.courses, start=1))

    if document.grades:
        lines.append("GRADES:")
        lines.extend(f"{subject}: {_format_scalar(grade)}" for subject, grade in document.grades)

    for line in lines:
        if "\n" in line or "\r" in line:
            raise ValueError(f"Line breaks are not allowed in document fields: {line!r}")

    return "".join(line + "\n" for line in lines)


def document_hash(document: DocumentData | Mapping[str, Any]) -> str:
    """Keccak-256 of the canonical encoding: the document's identity."""
    return keccak256(encode(document))


def _first(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _present(value: Any) -> bool:
    return value is not None and str(value) != ""


def _format_scalar(value: Any) -> str:
    # 3.0 and 3 render identically
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
