from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError

from ..app import db
from ..errors import (
    ConflictError,
    IdentifierCollision,
    NotFoundError,
    StorageUnavailable,
)
from ..models import Cadet, Certificate, PoomsaeEntry
from .acl import CallerScope, scope_filters
from .constants import (
    CADET,
    CERTIFICATE,
    DEFAULT_PAGE_SIZE,
    KIND_SEGMENTS,
    MAX_PAGE_SIZE,
    POOMSAE,
    RECENT_DAYS,
)
from .fields import CADET_FIELDS, CERTIFICATE_FIELDS, POOMSAE_FIELDS, FieldSpec
from .identifiers import format_identifier, parse_identifier
from .storage import remove_file, upload_dir
from .time import days_ago


@dataclass(frozen=True)
class EntryKind:
    """Everything that differs between cadets, poomsae entries and certificates."""

    name: str
    label: str
    model: type
    prefix: str
    width: int
    fields: tuple[FieldSpec, ...]
    state_attr: str
    district_attr: str
    group_size: Optional[int] = None
    secondary_key: Optional[str] = None
    secondary_label: str = ""
    filters: Mapping[str, str] = field(default_factory=dict)
    breakdowns: Mapping[str, str] = field(default_factory=dict)
    stamps_caller: bool = False

    def format_entry_id(self, value: int) -> str:
        return format_identifier(self.prefix, value, self.width, self.group_size)

    def parse_entry_id(self, entry_id: Optional[str]) -> Optional[int]:
        return parse_identifier(self.prefix, entry_id)

    @property
    def state_column(self):
        return getattr(self.model, self.state_attr)

    @property
    def district_column(self):
        return getattr(self.model, self.district_attr)


KINDS: dict[str, EntryKind] = {
    CADET: EntryKind(
        name=CADET,
        label="Cadet",
        model=Cadet,
        prefix="CAD",
        width=6,
        fields=CADET_FIELDS,
        state_attr="state",
        district_attr="district",
        secondary_key="tfi_id_card_no",
        secondary_label="TFI ID Card number",
        filters={"state": "state", "district": "district", "gender": "gender", "status": "status"},
        breakdowns={"byGender": "gender", "byState": "state", "byStatus": "status"},
    ),
    POOMSAE: EntryKind(
        name=POOMSAE,
        label="Poomsae",
        model=PoomsaeEntry,
        prefix="PMS",
        width=6,
        fields=POOMSAE_FIELDS,
        state_attr="state_org",
        district_attr="district",
        secondary_key="tfi_id_no",
        secondary_label="TFI ID number",
        filters={
            "stateOrg": "state_org",
            "district": "district",
            "division": "division",
            "category": "category",
            "gender": "gender",
        },
        breakdowns={"byDivision": "division", "byCategory": "category", "byGender": "gender"},
    ),
    CERTIFICATE: EntryKind(
        name=CERTIFICATE,
        label="Certificate",
        model=Certificate,
        prefix="",
        width=9,
        group_size=3,
        fields=CERTIFICATE_FIELDS,
        state_attr="state",
        district_attr="district",
        filters={"grade": "grade", "state": "state", "district": "district"},
        breakdowns={"byGrade": "grade"},
        stamps_caller=True,
    ),
}


def get_kind(name: str) -> EntryKind:
    try:
        return KINDS[name]
    except KeyError:
        raise NotFoundError(f"Unknown entry type {name!r}") from None


def kind_for_segment(segment: str) -> EntryKind:
    return get_kind(KIND_SEGMENTS.get(segment, segment))


def is_entry_id_conflict(kind: EntryKind, error: IntegrityError) -> bool:
    """True when an insert failed on the kind's entry_id unique constraint.

    PostgreSQL reports the violated constraint by name. SQLite only names the
    columns, as ``<table>.<column>``; its message never echoes the values.
    """

    table = kind.model.__tablename__
    orig = getattr(error, "orig", None)
    diag = getattr(orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    if constraint:
        return constraint == f"uq_{table}_entry_id"
    message = str(orig if orig is not None else error)
    if "UNIQUE constraint failed:" not in message:
        return False
    failed = message.split("UNIQUE constraint failed:", 1)[1]
    return [col.strip() for col in failed.split(",")] == [f"{table}.entry_id"]


def recover_max_sequence(kind: EntryKind) -> int:
    """Highest numeric suffix among the kind's existing entry ids (0 when none)."""

    highest = 0
    rows = db.session.query(kind.model.entry_id).yield_per(500)
    for (entry_id,) in rows:
        value = kind.parse_entry_id(entry_id)
        if value is not None and value > highest:
            highest = value
    return highest


def secondary_key_taken(kind: EntryKind, value: Any) -> bool:
    if not kind.secondary_key or value in (None, ""):
        return False
    column = getattr(kind.model, kind.secondary_key)
    return db.session.query(kind.model.id).filter(column == value).first() is not None


def insert_record(kind: EntryKind, values: Mapping[str, Any]):
    """Insert and commit one record.

    Raises IdentifierCollision when the entry id is already taken and
    ConflictError for any other unique violation.
    """

    record = kind.model(**values)
    db.session.add(record)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if is_entry_id_conflict(kind, exc):
            raise IdentifierCollision(values["entry_id"]) from exc
        current_app.logger.info(
            "[ENTRY] unique violation kind=%s detail=%s", kind.name, getattr(exc, "orig", exc)
        )
        if kind.secondary_label:
            message = f"{kind.label} with this {kind.secondary_label} already exists"
        else:
            message = f"{kind.label} already exists"
        raise ConflictError(message) from exc
    except (OperationalError, InterfaceError) as exc:
        db.session.rollback()
        current_app.logger.error("[ENTRY] storage unavailable kind=%s error=%s", kind.name, exc)
        raise StorageUnavailable() from exc
    return record


def _criteria(kind: EntryKind, scope: CallerScope) -> list:
    return scope_filters(scope, kind.state_column, kind.district_column)


def scoped_query(kind: EntryKind, scope: CallerScope):
    return db.session.query(kind.model).filter(*_criteria(kind, scope))


def get_entry(kind: EntryKind, entry_id: str, scope: CallerScope):
    record = scoped_query(kind, scope).filter(kind.model.entry_id == entry_id).one_or_none()
    if record is None:
        raise NotFoundError(f"{kind.label} entry not found")
    return record


def form_path(kind: EntryKind, file_name: str) -> str:
    return os.path.join(upload_dir(current_app.config["UPLOAD_ROOT"], kind.name), file_name)


def delete_entry(kind: EntryKind, entry_id: str, scope: CallerScope) -> None:
    record = get_entry(kind, entry_id, scope)
    file_name = record.form_file_name
    db.session.delete(record)
    db.session.commit()
    if file_name and not remove_file(form_path(kind, file_name)):
        current_app.logger.warning(
            "[ENTRY] form file already missing kind=%s file=%s", kind.name, file_name
        )
    current_app.logger.info("[ENTRY] deleted kind=%s entry_id=%s", kind.name, entry_id)


@dataclass
class EntryPage:
    items: list
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.total else 0

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "pagination": {
                "total": self.total,
                "page": self.page,
                "limit": self.limit,
                "pages": self.pages,
            },
        }


def list_entries(
    kind: EntryKind,
    scope: CallerScope,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    filters: Optional[Mapping[str, Any]] = None,
) -> EntryPage:
    page = max(1, page)
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    filters = filters or {}
    query = scoped_query(kind, scope)
    for key, attr in kind.filters.items():
        value = filters.get(key)
        if value not in (None, ""):
            query = query.filter(getattr(kind.model, attr) == value)
    search = (filters.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        query = query.filter(or_(kind.model.name.ilike(like), kind.model.entry_id.ilike(like)))
    total = query.count()
    items = (
        query.order_by(kind.model.created_at.desc(), kind.model.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return EntryPage(items=items, total=total, page=page, limit=limit)


def count_by(kind: EntryKind, scope: CallerScope, attr: str) -> list[dict]:
    column = getattr(kind.model, attr)
    rows = (
        db.session.query(column, func.count(kind.model.id))
        .filter(*_criteria(kind, scope))
        .group_by(column)
        .order_by(func.count(kind.model.id).desc())
        .all()
    )
    return [{"value": value, "count": count} for value, count in rows]


def entry_stats(kind: EntryKind, scope: CallerScope) -> dict:
    query = scoped_query(kind, scope)
    stats = {
        "total": query.count(),
        "recent": query.filter(kind.model.created_at >= days_ago(RECENT_DAYS)).count(),
    }
    for key, attr in kind.breakdowns.items():
        stats[key] = count_by(kind, scope, attr)
    return stats


def set_cadet_status(entry_id: str, status: str, scope: CallerScope):
    record = get_entry(KINDS[CADET], entry_id, scope)
    record.status = status
    db.session.commit()
    current_app.logger.info("[ENTRY] cadet status entry_id=%s status=%s", entry_id, status)
    return record
