from flask import Blueprint, Response, current_app

from ..models import User
from ..shared.acl import CallerScope
from ..shared.rbac import login_required
from ..shared.records import kind_for_segment, scoped_query
from ..shared.spreadsheets import XLSX_MIMETYPE, build_export, export_filename

bp = Blueprint("exports", __name__, url_prefix="/api/export")


@bp.get("/<any(cadets, poomsae, certificates):segment>")
@login_required
def export_entries(segment: str, current_user: User):
    kind = kind_for_segment(segment)
    scope = CallerScope.for_user(current_user)
    records = scoped_query(kind, scope).order_by(kind.model.created_at.desc()).all()
    filename = export_filename(kind, scope)
    current_app.logger.info(
        "[EXPORT] kind=%s rows=%s user=%s file=%s", kind.name, len(records), current_user.id, filename
    )
    return Response(
        build_export(kind, records),
        mimetype=XLSX_MIMETYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
