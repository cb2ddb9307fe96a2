from __future__ import annotations

import os

from flask import Blueprint, current_app, jsonify, request

from ..errors import ValidationError
from ..models import User
from ..shared.acl import CallerScope
from ..shared.constants import DEFAULT_PAGE_SIZE, KIND_SEGMENTS
from ..shared.fields import CADET_STATUS_FIELDS, clean_fields
from ..shared.rbac import load_current_user, login_required
from ..shared.records import (
    delete_entry,
    entry_stats,
    get_entry,
    kind_for_segment,
    list_entries,
    set_cadet_status,
)
from ..shared.registration import create_entry, import_rows
from ..shared.spreadsheets import read_rows

bp = Blueprint("entries", __name__, url_prefix="/api")

KIND = "<any({}):segment>".format(", ".join(KIND_SEGMENTS))


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a whole number") from None


@bp.post(f"/{KIND}")
def create(segment: str):
    kind = kind_for_segment(segment)
    caller = load_current_user(required=kind.stamps_caller)
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    created = create_entry(kind.name, payload, caller=caller)
    return (
        jsonify(
            {
                "success": True,
                "message": f"{kind.label} entry created successfully",
                "data": created.to_dict(),
            }
        ),
        201,
    )


@bp.get(f"/{KIND}")
@login_required
def index(segment: str, current_user: User):
    kind = kind_for_segment(segment)
    page = list_entries(
        kind,
        CallerScope.for_user(current_user),
        page=_int_arg("page", 1),
        limit=_int_arg("limit", DEFAULT_PAGE_SIZE),
        filters=request.args.to_dict(),
    )
    return jsonify({"success": True, "data": page.to_dict()})


@bp.get(f"/{KIND}/stats")
@login_required
def stats(segment: str, current_user: User):
    kind = kind_for_segment(segment)
    return jsonify(
        {"success": True, "data": entry_stats(kind, CallerScope.for_user(current_user))}
    )


@bp.get(f"/{KIND}/<entry_id>")
@login_required
def show(segment: str, entry_id: str, current_user: User):
    kind = kind_for_segment(segment)
    record = get_entry(kind, entry_id, CallerScope.for_user(current_user))
    return jsonify({"success": True, "data": record.to_dict()})


@bp.delete(f"/{KIND}/<entry_id>")
@login_required
def destroy(segment: str, entry_id: str, current_user: User):
    kind = kind_for_segment(segment)
    delete_entry(kind, entry_id, CallerScope.for_user(current_user))
    return jsonify({"success": True, "message": f"{kind.label} entry deleted successfully"})


@bp.patch("/cadets/<entry_id>/status")
@login_required
def update_cadet_status(entry_id: str, current_user: User):
    values = clean_fields(CADET_STATUS_FIELDS, request.get_json(silent=True) or {})
    record = set_cadet_status(entry_id, values["status"], CallerScope.for_user(current_user))
    return jsonify(
        {"success": True, "message": "Status updated successfully", "data": record.to_dict()}
    )


@bp.post(f"/{KIND}/import")
@login_required
def bulk_import(segment: str, current_user: User):
    kind = kind_for_segment(segment)
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        raise ValidationError("No file uploaded")
    if os.path.splitext(upload.filename)[1].lower() != ".xlsx":
        raise ValidationError("Only .xlsx files are accepted")
    rows = read_rows(kind, upload.read())
    current_app.logger.info(
        "[IMPORT] start kind=%s rows=%s user=%s", kind.name, len(rows), current_user.id
    )
    results = import_rows(kind.name, rows, caller=current_user)
    imported = sum(1 for result in results if result.success)
    return jsonify(
        {
            "success": True,
            "message": f"Imported {imported} of {len(results)} rows",
            "data": {
                "imported": imported,
                "failed": len(results) - imported,
                "results": [result.to_dict() for result in results],
            },
        }
    )
