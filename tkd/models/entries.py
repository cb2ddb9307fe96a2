from __future__ import annotations

from sqlalchemy.orm import validates

from ..app import db
from ..shared.storage import form_url
from ..shared.time import iso, now_utc


def entry_id_unique(table: str) -> db.UniqueConstraint:
    """Named so an insert collision on entry_id is recognisable from the error."""
    return db.UniqueConstraint("entry_id", name=f"uq_{table}_entry_id")


def _partial_unique(name: str, column: str) -> db.Index:
    """Unique index over non-blank values only."""
    condition = db.text(f"{column} IS NOT NULL AND {column} <> ''")
    return db.Index(
        name,
        column,
        unique=True,
        postgresql_where=condition,
        sqlite_where=condition,
    )


class EntryMixin:
    """Columns shared by every record that owns a generated form image."""

    kind = ""

    id = db.Column(db.Integer, primary_key=True)
    entry_id = db.Column(db.String(32), nullable=False)
    form_file_name = db.Column(db.String(255), nullable=False)
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

    @property
    def download_url(self):
        return form_url(self.kind, self.form_file_name)

    def _base_dict(self) -> dict:
        return {
            "id": self.id,
            "entryId": self.entry_id,
            "formFileName": self.form_file_name,
            "downloadUrl": self.download_url,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class Cadet(EntryMixin, db.Model):
    __tablename__ = "cadets"
    kind = "cadet"

    gender = db.Column(db.String(10), nullable=False)
    weight_category = db.Column(db.String(50))
    name = db.Column(db.String(150), nullable=False)
    date_of_birth = db.Column(db.Date, nullable=False)
    age = db.Column(db.Integer, nullable=False)
    weight = db.Column(db.Float, nullable=False)
    parent_guardian_name = db.Column(db.String(150))
    state = db.Column(db.String(100), nullable=False)
    district = db.Column(db.String(100), nullable=False)
    present_belt_grade = db.Column(db.String(50), nullable=False)
    tfi_id_card_no = db.Column(db.String(64))
    academic_qualification = db.Column(db.String(150))
    school_name = db.Column(db.String(200))
    status = db.Column(db.String(16), nullable=False, default="pending", server_default="pending")

    __table_args__ = (
        entry_id_unique("cadets"),
        _partial_unique("uix_cadets_tfi_id_card_no", "tfi_id_card_no"),
        db.Index("ix_cadets_state_district", "state", "district"),
        db.Index("ix_cadets_created_at", "created_at"),
    )

    @validates("name")
    def _upper_name(self, key, value):
        return (value or "").strip().upper()

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update(
            {
                "gender": self.gender,
                "weightCategory": self.weight_category,
                "name": self.name,
                "dateOfBirth": iso(self.date_of_birth),
                "age": self.age,
                "weight": self.weight,
                "parentGuardianName": self.parent_guardian_name,
                "state": self.state,
                "district": self.district,
                "presentBeltGrade": self.present_belt_grade,
                "tfiIdCardNo": self.tfi_id_card_no,
                "academicQualification": self.academic_qualification,
                "schoolName": self.school_name,
                "status": self.status,
            }
        )
        return data


class PoomsaeEntry(EntryMixin, db.Model):
    __tablename__ = "poomsae_entries"
    kind = "poomsae"

    division = db.Column(db.String(20), nullable=False)
    category = db.Column(db.String(20), nullable=False)
    gender = db.Column(db.String(10), nullable=False)
    name = db.Column(db.String(150), nullable=False)
    state_org = db.Column(db.String(150), nullable=False)
    district = db.Column(db.String(100), nullable=False)
    date_of_birth = db.Column(db.Date, nullable=False)
    age = db.Column(db.Integer, nullable=False)
    weight = db.Column(db.Float, nullable=False)
    parent_guardian_name = db.Column(db.String(150))
    mobile_no = db.Column(db.String(10), nullable=False)
    current_belt_grade = db.Column(db.String(50))
    tfi_id_no = db.Column(db.String(64))
    dan_certificate_no = db.Column(db.String(64))
    academic_qualification = db.Column(db.String(150))
    name_of_college = db.Column(db.String(200))
    name_of_board_university = db.Column(db.String(200))

    __table_args__ = (
        entry_id_unique("poomsae_entries"),
        _partial_unique("uix_poomsae_entries_tfi_id_no", "tfi_id_no"),
        db.Index("ix_poomsae_entries_state_district", "state_org", "district"),
        db.Index("ix_poomsae_entries_created_at", "created_at"),
    )

    @validates("name")
    def _upper_name(self, key, value):
        return (value or "").strip().upper()

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update(
            {
                "division": self.division,
                "category": self.category,
                "gender": self.gender,
                "name": self.name,
                "stateOrg": self.state_org,
                "district": self.district,
                "dateOfBirth": iso(self.date_of_birth),
                "age": self.age,
                "weight": self.weight,
                "parentGuardianName": self.parent_guardian_name,
                "mobileNo": self.mobile_no,
                "currentBeltGrade": self.current_belt_grade,
                "tfiIdNo": self.tfi_id_no,
                "danCertificateNo": self.dan_certificate_no,
                "academicQualification": self.academic_qualification,
                "nameOfCollege": self.name_of_college,
                "nameOfBoardUniversity": self.name_of_board_university,
            }
        )
        return data


class Certificate(EntryMixin, db.Model):
    __tablename__ = "certificates"
    kind = "certificate"

    name = db.Column(db.String(150), nullable=False)
    date = db.Column(db.Date, nullable=False)
    grade = db.Column(db.String(50), nullable=False)
    generated_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    state = db.Column(db.String(100))
    district = db.Column(db.String(100))

    generator = db.relationship("User")

    __table_args__ = (
        entry_id_unique("certificates"),
        db.Index("ix_certificates_state_district", "state", "district"),
        db.Index("ix_certificates_created_at", "created_at"),
    )

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update(
            {
                "serialNumber": self.entry_id,
                "name": self.name,
                "date": iso(self.date),
                "grade": self.grade,
                "generatedBy": self.generated_by,
                "generatedByName": self.generator.name if self.generator else None,
                "state": self.state,
                "district": self.district,
            }
        )
        return data
