from __future__ import annotations

from sqlalchemy.orm import validates

from ..app import db
from ..shared.constants import ROLE_ALIASES, ROLE_LABELS
from ..shared.passwords import hash_password, verify_password
from ..shared.time import iso, now_utc


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    role = db.Column(db.String(32), nullable=False)
    state = db.Column(db.String(100))
    district = db.Column(db.String(100))
    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default=db.true())
    last_login = db.Column(db.DateTime(timezone=True))
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=now_utc, server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=now_utc,
        onupdate=now_utc,
        server_default=db.func.now(),
    )

    __table_args__ = (
        db.Index("uix_users_email_lower", db.func.lower(email), unique=True),
        db.Index("ix_users_role", "role"),
        db.Index("ix_users_state", "state"),
    )

    @validates("email")
    def _normalize_email(self, key, value):  # pragma: no cover - simple normalizer
        return (value or "").strip().lower()

    @validates("role")
    def _normalize_role(self, key, value):
        return ROLE_ALIASES.get(value, value)

    @validates("state", "district")
    def _blank_to_none(self, key, value):
        value = (value or "").strip()
        return value or None

    def set_password(self, plain: str) -> None:
        self.password_hash = hash_password(plain)

    def check_password(self, plain: str) -> bool:
        return verify_password(plain, self.password_hash)

    @property
    def role_label(self) -> str:
        return ROLE_LABELS.get(self.role, self.role)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "roleLabel": self.role_label,
            "state": self.state,
            "district": self.district,
            "isActive": bool(self.is_active),
            "lastLogin": iso(self.last_login),
            "createdAt": iso(self.created_at),
        }


class SequenceCounter(db.Model):
    """Last issued value per named sequence. Mutated only by the allocator."""

    __tablename__ = "sequence_counters"

    name = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.BigInteger, nullable=False, default=0, server_default="0")


from .entries import Cadet, Certificate, PoomsaeEntry  # noqa: E402

__all__ = ["User", "SequenceCounter", "Cadet", "PoomsaeEntry", "Certificate"]
