"""Per-kind field allow-lists and input cleaning.

Only the fields listed here are copied from a request (or spreadsheet row)
onto a record. Each field is typed, trimmed and range checked; every
problem is collected so the client sees all of them at once.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Mapping

from ..errors import ValidationError
from .constants import (
    CADET_GENDERS,
    CADET_STATUSES,
    POOMSAE_CATEGORIES,
    POOMSAE_DIVISIONS,
    POOMSAE_GENDERS,
    ROLES,
)

STR = "str"
INT = "int"
FLOAT = "float"
DATE = "date"
BOOL = "bool"


@dataclass(frozen=True)
class FieldSpec:
    key: str
    attr: str
    label: str
    type: str = STR
    required: bool = False
    choices: tuple[str, ...] = ()
    minimum: float | None = None
    maximum: float | None = None
    pattern: str | None = None
    pattern_message: str = "has an invalid format"
    min_length: int = 0
    max_length: int = 200


def header_token(text: Any) -> str:
    """Lower-case alphanumerics only, for matching spreadsheet headers."""
    return re.sub(r"[^a-z0-9]", "", str(text or "").lower())


def _text(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce(spec: FieldSpec, value: Any):
    """Return the typed value or raise ValueError with a client-facing message."""

    if spec.type == STR:
        text = _text(value)
        if len(text) < spec.min_length:
            raise ValueError(f"must be at least {spec.min_length} characters")
        if len(text) > spec.max_length:
            raise ValueError(f"must be at most {spec.max_length} characters")
        if spec.choices:
            for choice in spec.choices:
                if choice.lower() == text.lower():
                    return choice
            raise ValueError(f"must be one of: {', '.join(spec.choices)}")
        if spec.pattern and not re.fullmatch(spec.pattern, text):
            raise ValueError(spec.pattern_message)
        return text

    if spec.type in (INT, FLOAT):
        if isinstance(value, bool):
            raise ValueError("must be a number")
        try:
            number = float(str(value).strip()) if isinstance(value, str) else float(value)
        except (TypeError, ValueError):
            raise ValueError("must be a number") from None
        if number != number:  # NaN
            raise ValueError("must be a number")
        if spec.type == INT:
            if not number.is_integer():
                raise ValueError("must be a whole number")
            number = int(number)
        if spec.minimum is not None and number < spec.minimum:
            raise ValueError(f"must be at least {spec.minimum:g}")
        if spec.maximum is not None and number > spec.maximum:
            raise ValueError(f"must be at most {spec.maximum:g}")
        return number

    if spec.type == DATE:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        text = str(value).strip()
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            pass
        try:
            return datetime.strptime(text, "%d-%m-%Y").date()
        except ValueError:
            raise ValueError("must be a valid date (YYYY-MM-DD)") from None

    if spec.type == BOOL:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in ("1", "true", "yes", "on"):
            return True
        if text in ("0", "false", "no", "off"):
            return False
        raise ValueError("must be true or false")

    raise ValueError(f"unsupported field type {spec.type}")


def _lookup(raw: Mapping[str, Any], spec: FieldSpec) -> Any:
    if spec.key in raw:
        return raw[spec.key]
    return raw.get(spec.attr)


def clean_fields(
    specs: Iterable[FieldSpec], raw: Mapping[str, Any], *, partial: bool = False
) -> dict[str, Any]:
    """Validate ``raw`` against ``specs`` and return ``{attr: value}``.

    Unknown keys are ignored. Blank optional values become None. With
    ``partial`` only the keys present in ``raw`` are validated and returned.
    """

    if not isinstance(raw, Mapping):
        raise ValidationError("Request body must be a JSON object")
    cleaned: dict[str, Any] = {}
    errors: list[dict[str, str]] = []
    for spec in specs:
        if partial and spec.key not in raw and spec.attr not in raw:
            continue
        value = _lookup(raw, spec)
        if _is_blank(value):
            if spec.required:
                errors.append({"field": spec.key, "message": f"{spec.label} is required"})
            else:
                cleaned[spec.attr] = None
            continue
        try:
            cleaned[spec.attr] = _coerce(spec, value)
        except ValueError as exc:
            errors.append({"field": spec.key, "message": f"{spec.label} {exc}"})
    if errors:
        raise ValidationError("Validation failed", errors=errors)
    return cleaned


CADET_FIELDS = (
    FieldSpec("gender", "gender", "Gender", required=True, choices=CADET_GENDERS),
    FieldSpec("weightCategory", "weight_category", "Weight Category", max_length=50),
    FieldSpec("name", "name", "Name", required=True, min_length=2, max_length=150),
    FieldSpec("dateOfBirth", "date_of_birth", "Date of Birth", type=DATE, required=True),
    FieldSpec("age", "age", "Age", type=INT, required=True, minimum=5, maximum=50),
    FieldSpec("weight", "weight", "Weight", type=FLOAT, required=True, minimum=10, maximum=150),
    FieldSpec("parentGuardianName", "parent_guardian_name", "Parent/Guardian Name", max_length=150),
    FieldSpec("state", "state", "State", required=True, max_length=100),
    FieldSpec("district", "district", "District", required=True, max_length=100),
    FieldSpec(
        "presentBeltGrade", "present_belt_grade", "Present Belt Grade", required=True, max_length=50
    ),
    FieldSpec("tfiIdCardNo", "tfi_id_card_no", "TFI ID Card No", max_length=64),
    FieldSpec(
        "academicQualification", "academic_qualification", "Academic Qualification", max_length=150
    ),
    FieldSpec("schoolName", "school_name", "School Name"),
)

POOMSAE_FIELDS = (
    FieldSpec("division", "division", "Division", required=True, choices=POOMSAE_DIVISIONS),
    FieldSpec("category", "category", "Category", required=True, choices=POOMSAE_CATEGORIES),
    FieldSpec("gender", "gender", "Gender", required=True, choices=POOMSAE_GENDERS),
    FieldSpec("name", "name", "Name", required=True, min_length=2, max_length=150),
    FieldSpec(
        "stateOrg", "state_org", "State Organisation", required=True, min_length=2, max_length=150
    ),
    FieldSpec("district", "district", "District", required=True, min_length=2, max_length=100),
    FieldSpec("dateOfBirth", "date_of_birth", "Date of Birth", type=DATE, required=True),
    FieldSpec("age", "age", "Age", type=INT, required=True, minimum=5, maximum=120),
    FieldSpec("weight", "weight", "Weight", type=FLOAT, required=True, minimum=10, maximum=200),
    FieldSpec("parentGuardianName", "parent_guardian_name", "Parent/Guardian Name", max_length=150),
    FieldSpec(
        "mobileNo",
        "mobile_no",
        "Mobile No",
        required=True,
        pattern=r"[0-9]{10}",
        pattern_message="must be 10 digits",
    ),
    FieldSpec("currentBeltGrade", "current_belt_grade", "Current Belt Grade", max_length=50),
    FieldSpec("tfiIdNo", "tfi_id_no", "TFI ID No", max_length=64),
    FieldSpec("danCertificateNo", "dan_certificate_no", "Dan Certificate No", max_length=64),
    FieldSpec(
        "academicQualification", "academic_qualification", "Academic Qualification", max_length=150
    ),
    FieldSpec("nameOfCollege", "name_of_college", "Name of College"),
    FieldSpec("nameOfBoardUniversity", "name_of_board_university", "Name of Board/University"),
)

CERTIFICATE_FIELDS = (
    FieldSpec("name", "name", "Name", required=True, min_length=2, max_length=150),
    FieldSpec("date", "date", "Date", type=DATE, required=True),
    FieldSpec("grade", "grade", "Grade", required=True, max_length=50),
)

USER_CREATE_FIELDS = (
    FieldSpec(
        "email",
        "email",
        "Email",
        required=True,
        max_length=255,
        pattern=r"[^@\s]+@[^@\s]+\.[^@\s]+",
        pattern_message="must be a valid email address",
    ),
    FieldSpec("password", "password", "Password", required=True, max_length=128),
    FieldSpec("name", "name", "Name", required=True, min_length=2, max_length=100),
    FieldSpec("role", "role", "Role", required=True, choices=ROLES),
    FieldSpec("state", "state", "State", max_length=100),
    FieldSpec("district", "district", "District", max_length=100),
)

USER_UPDATE_FIELDS = (
    FieldSpec("name", "name", "Name", required=True, min_length=2, max_length=100),
    FieldSpec("role", "role", "Role", required=True, choices=ROLES),
    FieldSpec("state", "state", "State", max_length=100),
    FieldSpec("district", "district", "District", max_length=100),
    FieldSpec("isActive", "is_active", "Active", type=BOOL),
)

CADET_STATUS_FIELDS = (
    FieldSpec("status", "status", "Status", required=True, choices=CADET_STATUSES),
)
