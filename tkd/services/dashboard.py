"""Role-scoped aggregates for the admin dashboard."""

from __future__ import annotations

from sqlalchemy import func

from ..app import db
from ..models import User
from ..shared.acl import CallerScope
from ..shared.constants import CADET, CERTIFICATE, POOMSAE, RECENT_DAYS, STATE_ADMIN, DISTRICT_ADMIN
from ..shared.records import KINDS, count_by, scoped_query
from ..shared.time import days_ago, iso

ACTIVITY_LIMIT = 10


def _user_query(scope: CallerScope):
    query = db.session.query(User)
    if scope.role == STATE_ADMIN:
        query = query.filter(User.state == scope.state)
    elif scope.role == DISTRICT_ADMIN:
        query = query.filter(User.district == scope.district)
    return query


def overview(scope: CallerScope) -> dict:
    since = days_ago(RECENT_DAYS)
    totals = {}
    recent = {}
    for name, kind in KINDS.items():
        query = scoped_query(kind, scope)
        totals[name] = query.count()
        recent[name] = query.filter(kind.model.created_at >= since).count()

    users = _user_query(scope)
    users_by_role = (
        users.with_entities(User.role, func.count(User.id)).group_by(User.role).all()
    )
    return {
        "overview": {
            "totalUsers": users.count(),
            "activeUsers": users.filter(User.is_active.is_(True)).count(),
            "totalCadets": totals[CADET],
            "totalPoomsae": totals[POOMSAE],
            "totalCertificates": totals[CERTIFICATE],
            "totalApplications": totals[CADET] + totals[POOMSAE],
            "recentCadets": recent[CADET],
            "recentPoomsae": recent[POOMSAE],
            "recentCertificates": recent[CERTIFICATE],
        },
        "usersByRole": [{"value": role, "count": count} for role, count in users_by_role],
        "cadetsByState": count_by(KINDS[CADET], scope, "state"),
        "cadetsByGender": count_by(KINDS[CADET], scope, "gender"),
        "poomsaeByDivision": count_by(KINDS[POOMSAE], scope, "division"),
    }


def activities(scope: CallerScope, limit: int = ACTIVITY_LIMIT) -> list[dict]:
    """Newest registrations across all kinds, newest first."""

    items = []
    for name, kind in KINDS.items():
        records = (
            scoped_query(kind, scope)
            .order_by(kind.model.created_at.desc(), kind.model.id.desc())
            .limit(limit)
            .all()
        )
        for record in records:
            items.append(
                {
                    "type": name,
                    "entryId": record.entry_id,
                    "name": record.name,
                    "district": getattr(record, kind.district_attr),
                    "downloadUrl": record.download_url,
                    "createdAt": record.created_at,
                }
            )
    items.sort(key=lambda item: (item["createdAt"] is not None, item["createdAt"]), reverse=True)
    for item in items:
        item["createdAt"] = iso(item["createdAt"])
    return items[:limit]
