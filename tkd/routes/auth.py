from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import func

from ..app import db
from ..errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from ..models import User
from ..shared.acl import can_manage_account, is_super_admin, normalize_role
from ..shared.constants import DISTRICT_ADMIN, STATE_ADMIN, SUPER_ADMIN
from ..shared.fields import USER_CREATE_FIELDS, USER_UPDATE_FIELDS, clean_fields
from ..shared.passwords import password_problems
from ..shared.rbac import issue_token, login_required, roles_required
from ..shared.time import now_utc

bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def _with_normalized_role(payload: dict) -> dict:
    if "role" in payload:
        payload = dict(payload)
        payload["role"] = normalize_role(payload["role"]) or payload["role"]
    return payload


def _check_role_scope(values: dict) -> None:
    role = values.get("role")
    if role == STATE_ADMIN and not values.get("state"):
        raise ValidationError(
            "Validation failed",
            errors=[{"field": "state", "message": "State is required for state admins"}],
        )
    if role == DISTRICT_ADMIN and not (values.get("state") and values.get("district")):
        raise ValidationError(
            "Validation failed",
            errors=[
                {"field": "district", "message": "State and district are required for district admins"}
            ],
        )


def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def _email_taken(email: str) -> bool:
    return (
        db.session.query(User.id).filter(func.lower(User.email) == email.lower()).first()
        is not None
    )


def _create_user(values: dict, actor: User) -> User:
    problems = password_problems(values["password"])
    if problems:
        raise ValidationError(
            "Validation failed",
            errors=[{"field": "password", "message": f"Password {p}"} for p in problems],
        )
    if _email_taken(values["email"]):
        raise ConflictError("User with this email already exists")
    user = User(
        email=values["email"],
        name=values["name"],
        role=values["role"],
        state=values.get("state"),
        district=values.get("district"),
        created_by=actor.id,
    )
    user.set_password(values["password"])
    db.session.add(user)
    db.session.commit()
    current_app.logger.info(
        "[AUTH] user created id=%s role=%s by=%s", user.id, user.role, actor.id
    )
    return user


@bp.post("/login")
def login():
    payload = _json_body()
    email = str(payload.get("email") or "").strip().lower()
    password = str(payload.get("password") or "")
    if not email or not password:
        raise ValidationError("Email and password are required")
    user = db.session.query(User).filter(func.lower(User.email) == email).one_or_none()
    if not user or not user.check_password(password):
        current_app.logger.info("[AUTH-FAIL] login email=%s reason=invalid", email)
        raise AuthenticationError("Invalid email or password")
    if not user.is_active:
        current_app.logger.info("[AUTH-FAIL] login email=%s reason=inactive", email)
        raise AuthorizationError("Account is inactive. Please contact administrator.")
    user.last_login = now_utc()
    db.session.commit()
    current_app.logger.info("[AUTH] login user=%s role=%s", user.id, user.role)
    return jsonify(
        {
            "success": True,
            "message": "Login successful",
            "data": {"token": issue_token(user), "user": user.to_dict()},
        }
    )


@bp.get("/profile")
@login_required
def profile(current_user: User):
    return jsonify({"success": True, "data": current_user.to_dict()})


@bp.get("/users")
@roles_required(SUPER_ADMIN)
def list_users(current_user: User):
    query = db.session.query(User)
    role = normalize_role(request.args.get("role"))
    if role:
        query = query.filter(User.role == role)
    state = request.args.get("state")
    if state:
        query = query.filter(User.state == state)
    users = query.order_by(User.created_at.desc(), User.id.desc()).all()
    return jsonify({"success": True, "data": [u.to_dict() for u in users]})


@bp.post("/users")
@roles_required(SUPER_ADMIN)
def create_user(current_user: User):
    values = clean_fields(USER_CREATE_FIELDS, _with_normalized_role(_json_body()))
    _check_role_scope(values)
    user = _create_user(values, current_user)
    return jsonify({"success": True, "message": "User created successfully", "data": user.to_dict()}), 201


@bp.put("/users/<int:user_id>")
@roles_required(SUPER_ADMIN)
def update_user(user_id: int, current_user: User):
    user = _get_user(user_id)
    values = clean_fields(USER_UPDATE_FIELDS, _with_normalized_role(_json_body()), partial=True)
    merged = {"role": user.role, "state": user.state, "district": user.district, **values}
    _check_role_scope(merged)
    if user.id == current_user.id and merged["role"] != SUPER_ADMIN:
        raise ValidationError("You cannot change your own role")
    for attr in ("name", "role", "state", "district", "is_active"):
        if attr in values and (values[attr] is not None or attr in ("state", "district")):
            setattr(user, attr, values[attr])
    db.session.commit()
    current_app.logger.info("[AUTH] user updated id=%s by=%s", user.id, current_user.id)
    return jsonify({"success": True, "message": "User updated successfully", "data": user.to_dict()})


@bp.delete("/users/<int:user_id>")
@roles_required(SUPER_ADMIN)
def delete_user(user_id: int, current_user: User):
    user = _get_user(user_id)
    if user.id == current_user.id:
        raise ValidationError("You cannot delete your own account")
    db.session.delete(user)
    db.session.commit()
    current_app.logger.info("[AUTH] user deleted id=%s by=%s", user_id, current_user.id)
    return jsonify({"success": True, "message": "User deleted successfully"})


def _toggle(user: User, actor: User):
    if user.id == actor.id:
        raise ValidationError("You cannot deactivate your own account")
    user.is_active = not user.is_active
    db.session.commit()
    state = "activated" if user.is_active else "deactivated"
    current_app.logger.info("[AUTH] user %s id=%s by=%s", state, user.id, actor.id)
    return jsonify({"success": True, "message": f"User {state} successfully", "data": user.to_dict()})


@bp.patch("/users/<int:user_id>/toggle-status")
@roles_required(SUPER_ADMIN)
def toggle_user_status(user_id: int, current_user: User):
    return _toggle(_get_user(user_id), current_user)


@bp.get("/district-admins")
@roles_required(SUPER_ADMIN, STATE_ADMIN)
def list_district_admins(current_user: User):
    query = db.session.query(User).filter(User.role == DISTRICT_ADMIN)
    if not is_super_admin(current_user):
        query = query.filter(User.state == current_user.state)
    users = query.order_by(User.district, User.name).all()
    return jsonify({"success": True, "data": [u.to_dict() for u in users]})


@bp.post("/district-admins")
@roles_required(SUPER_ADMIN, STATE_ADMIN)
def create_district_admin(current_user: User):
    payload = dict(_json_body())
    payload["role"] = DISTRICT_ADMIN
    if not is_super_admin(current_user):
        if not current_user.state:
            raise AuthorizationError("State information not found for state admin")
        payload["state"] = current_user.state
    values = clean_fields(USER_CREATE_FIELDS, payload)
    _check_role_scope(values)
    user = _create_user(values, current_user)
    return (
        jsonify({"success": True, "message": "District admin created successfully", "data": user.to_dict()}),
        201,
    )


def _managed_district_admin(user_id: int, actor: User) -> User:
    user = _get_user(user_id)
    if normalize_role(user.role) != DISTRICT_ADMIN or not can_manage_account(actor, user):
        # Accounts outside the caller's state are reported as missing.
        raise NotFoundError("User not found")
    return user


@bp.patch("/district-admins/<int:user_id>/toggle-status")
@roles_required(SUPER_ADMIN, STATE_ADMIN)
def toggle_district_admin(user_id: int, current_user: User):
    return _toggle(_managed_district_admin(user_id, current_user), current_user)


@bp.delete("/district-admins/<int:user_id>")
@roles_required(SUPER_ADMIN, STATE_ADMIN)
def delete_district_admin(user_id: int, current_user: User):
    user = _managed_district_admin(user_id, current_user)
    db.session.delete(user)
    db.session.commit()
    current_app.logger.info("[AUTH] district admin deleted id=%s by=%s", user_id, current_user.id)
    return jsonify({"success": True, "message": "District admin deleted successfully"})
