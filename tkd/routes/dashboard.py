from flask import Blueprint, jsonify, request

from ..models import User
from ..services.dashboard import ACTIVITY_LIMIT, activities, overview
from ..shared.acl import CallerScope
from ..shared.constants import MAX_PAGE_SIZE
from ..shared.rbac import login_required

bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@bp.get("/stats")
@login_required
def stats(current_user: User):
    return jsonify({"success": True, "data": overview(CallerScope.for_user(current_user))})


@bp.get("/activities")
@login_required
def recent_activities(current_user: User):
    limit = request.args.get("limit", ACTIVITY_LIMIT, type=int) or ACTIVITY_LIMIT
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    return jsonify(
        {"success": True, "data": activities(CallerScope.for_user(current_user), limit=limit)}
    )
