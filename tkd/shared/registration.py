"""Create records together with their rendered form images.

Each submission moves through validate -> allocate -> render -> persist. The
form image is always written before the row is inserted, so a stored row
always points at an existing file. When the insert loses on the entry_id
unique index the submission starts over from allocation with a fresh id,
at most ``ENTRY_MAX_ATTEMPTS`` times.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional, TypeVar

from flask import current_app

from ..app import db
from ..errors import (
    AppError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    IdentifierCollision,
    IdentifierExhausted,
    ValidationError,
)
from .acl import CallerScope, scope_allows
from .constants import STATE_ADMIN
from .fields import clean_fields
from .forms import RenderedForm, render_form
from .records import (
    EntryKind,
    get_kind,
    insert_record,
    recover_max_sequence,
    secondary_key_taken,
)
from .sequences import allocate
from .time import iso

T = TypeVar("T")


class RetriesExhausted(Exception):
    def __init__(self, attempts: int, last_error: Exception):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"gave up after {attempts} attempts: {last_error}")


def with_bounded_retry(
    attempt: Callable[[int], T],
    *,
    retry_on: type[Exception],
    max_attempts: int,
    on_retry: Optional[Callable[[int, Exception], None]] = None,
) -> T:
    """Call ``attempt(n)`` until it succeeds, retrying only on ``retry_on``."""

    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    last_error: Optional[Exception] = None
    for number in range(1, max_attempts + 1):
        try:
            return attempt(number)
        except retry_on as exc:
            last_error = exc
            if on_retry is not None and number < max_attempts:
                on_retry(number, exc)
    raise RetriesExhausted(max_attempts, last_error)


@dataclass(frozen=True)
class CreatedEntry:
    entry_id: str
    download_url: str
    file_name: str
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "entryId": self.entry_id,
            "downloadUrl": self.download_url,
            "fileName": self.file_name,
            "createdAt": iso(self.created_at),
        }


class RegistrationPipeline:
    """One pipeline per entry kind."""

    def __init__(self, kind: EntryKind, max_attempts: Optional[int] = None):
        self.kind = kind
        self.max_attempts = max_attempts or current_app.config.get("ENTRY_MAX_ATTEMPTS", 3)

    def validate(self, raw: Mapping[str, Any], caller=None) -> dict[str, Any]:
        kind = self.kind
        try:
            values = clean_fields(kind.fields, raw)
        except ValidationError as exc:
            current_app.logger.info(
                "[ENTRY] validation failed kind=%s fields=%s",
                kind.name,
                ",".join(err["field"] for err in exc.errors),
            )
            raise
        if kind.stamps_caller:
            if caller is None:
                raise AuthenticationError("Authentication required")
            scope = CallerScope.for_user(caller)
            values["generated_by"] = scope.user_id
            values[kind.state_attr] = scope.state
            values[kind.district_attr] = scope.district
        elif caller is not None:
            self._check_scope(values, CallerScope.for_user(caller))
        # Advisory only; the partial unique index is the real guard.
        if kind.secondary_key and secondary_key_taken(kind, values.get(kind.secondary_key)):
            current_app.logger.info(
                "[ENTRY] duplicate %s kind=%s", kind.secondary_key, kind.name
            )
            raise ConflictError(f"{kind.label} with this {kind.secondary_label} already exists")
        return values

    def _check_scope(self, values: Mapping[str, Any], scope: CallerScope) -> None:
        kind = self.kind
        state = values.get(kind.state_attr)
        district = values.get(kind.district_attr)
        if scope_allows(scope, state, district):
            return
        current_app.logger.info(
            "[ENTRY] out of scope kind=%s user=%s state=%s district=%s",
            kind.name,
            scope.user_id,
            state,
            district,
        )
        if scope.role == STATE_ADMIN:
            raise AuthorizationError(f"You can only register entries for {scope.state}")
        raise AuthorizationError(f"You can only register entries for {scope.district} district")

    def allocate(self) -> str:
        value = allocate(self.kind.name, seed=lambda: recover_max_sequence(self.kind))
        return self.kind.format_entry_id(value)

    def render(self, entry_id: str, values: Mapping[str, Any]) -> RenderedForm:
        return render_form(self.kind.name, {**values, "entry_id": entry_id})

    def persist(self, entry_id: str, values: Mapping[str, Any], rendered: RenderedForm):
        return insert_record(
            self.kind,
            {**values, "entry_id": entry_id, "form_file_name": rendered.file_name},
        )

    def _attempt(self, values: Mapping[str, Any], number: int):
        entry_id = self.allocate()
        current_app.logger.info(
            "[ENTRY] allocated kind=%s entry_id=%s attempt=%s", self.kind.name, entry_id, number
        )
        rendered = self.render(entry_id, values)
        record = self.persist(entry_id, values, rendered)
        return record, rendered

    def _log_collision(self, number: int, exc: Exception) -> None:
        current_app.logger.warning(
            "[ENTRY] entry_id collision kind=%s entry_id=%s attempt=%s; retrying",
            self.kind.name,
            getattr(exc, "entry_id", None),
            number,
        )

    def run(self, raw: Mapping[str, Any], caller=None) -> CreatedEntry:
        values = self.validate(raw, caller)
        try:
            record, rendered = with_bounded_retry(
                lambda number: self._attempt(values, number),
                retry_on=IdentifierCollision,
                max_attempts=self.max_attempts,
                on_retry=self._log_collision,
            )
        except RetriesExhausted as exc:
            current_app.logger.error(
                "[ENTRY-ANOMALY] kind=%s gave up after %s entry_id collisions; last=%s",
                self.kind.name,
                exc.attempts,
                getattr(exc.last_error, "entry_id", None),
            )
            raise IdentifierExhausted() from exc.last_error
        current_app.logger.info(
            "[ENTRY] created kind=%s entry_id=%s file=%s",
            self.kind.name,
            record.entry_id,
            rendered.file_name,
        )
        return CreatedEntry(
            entry_id=record.entry_id,
            download_url=rendered.url,
            file_name=rendered.file_name,
            created_at=record.created_at,
        )


def create_entry(kind_name: str, fields: Mapping[str, Any], caller=None) -> CreatedEntry:
    return RegistrationPipeline(get_kind(kind_name)).run(fields, caller)


@dataclass(frozen=True)
class ImportResult:
    row: int
    success: bool
    entry_id: Optional[str] = None
    message: Optional[str] = None
    errors: tuple = ()

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"row": self.row, "success": self.success}
        if self.entry_id:
            data["entryId"] = self.entry_id
        if self.message:
            data["message"] = self.message
        if self.errors:
            data["errors"] = list(self.errors)
        return data


def import_rows(
    kind_name: str, rows: Iterable[tuple[int, Mapping[str, Any]]], caller=None
) -> list[ImportResult]:
    """Run every spreadsheet row through the pipeline independently."""

    pipeline = RegistrationPipeline(get_kind(kind_name))
    results: list[ImportResult] = []
    for row_number, row in rows:
        try:
            created = pipeline.run(row, caller)
        except AppError as exc:
            db.session.rollback()
            results.append(
                ImportResult(
                    row=row_number,
                    success=False,
                    message=exc.message,
                    errors=tuple(exc.errors),
                )
            )
            continue
        except Exception:
            db.session.rollback()
            current_app.logger.exception(
                "[IMPORT] unexpected failure kind=%s row=%s", kind_name, row_number
            )
            results.append(
                ImportResult(row=row_number, success=False, message="Unexpected error")
            )
            continue
        results.append(ImportResult(row=row_number, success=True, entry_id=created.entry_id))
    imported = sum(1 for result in results if result.success)
    current_app.logger.info(
        "[IMPORT] kind=%s imported=%s failed=%s", kind_name, imported, len(results) - imported
    )
    return results
