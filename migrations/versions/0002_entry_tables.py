"""create cadets, poomsae entries and certificates

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-17 00:10:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def _entry_columns(table: str):
    return [
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("entry_id", sa.String(length=32), nullable=False),
        sa.Column("form_file_name", sa.String(length=255), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.UniqueConstraint("entry_id", name=f"uq_{table}_entry_id"),
    ]


def _partial_unique(name: str, table: str, column: str) -> None:
    condition = sa.text(f"{column} IS NOT NULL AND {column} <> ''")
    op.create_index(
        name,
        table,
        [column],
        unique=True,
        postgresql_where=condition,
        sqlite_where=condition,
    )


def upgrade() -> None:
    op.create_table(
        "cadets",
        *_entry_columns("cadets"),
        sa.Column("gender", sa.String(length=10), nullable=False),
        sa.Column("weight_category", sa.String(length=50), nullable=True),
        sa.Column("name", sa.String(length=150), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=False),
        sa.Column("age", sa.Integer(), nullable=False),
        sa.Column("weight", sa.Float(), nullable=False),
        sa.Column("parent_guardian_name", sa.String(length=150), nullable=True),
        sa.Column("state", sa.String(length=100), nullable=False),
        sa.Column("district", sa.String(length=100), nullable=False),
        sa.Column("present_belt_grade", sa.String(length=50), nullable=False),
        sa.Column("tfi_id_card_no", sa.String(length=64), nullable=True),
        sa.Column("academic_qualification", sa.String(length=150), nullable=True),
        sa.Column("school_name", sa.String(length=200), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
    )
    _partial_unique("uix_cadets_tfi_id_card_no", "cadets", "tfi_id_card_no")
    op.create_index("ix_cadets_state_district", "cadets", ["state", "district"])
    op.create_index("ix_cadets_created_at", "cadets", ["created_at"])

    op.create_table(
        "poomsae_entries",
        *_entry_columns("poomsae_entries"),
        sa.Column("division", sa.String(length=20), nullable=False),
        sa.Column("category", sa.String(length=20), nullable=False),
        sa.Column("gender", sa.String(length=10), nullable=False),
        sa.Column("name", sa.String(length=150), nullable=False),
        sa.Column("state_org", sa.String(length=150), nullable=False),
        sa.Column("district", sa.String(length=100), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=False),
        sa.Column("age", sa.Integer(), nullable=False),
        sa.Column("weight", sa.Float(), nullable=False),
        sa.Column("parent_guardian_name", sa.String(length=150), nullable=True),
        sa.Column("mobile_no", sa.String(length=10), nullable=False),
        sa.Column("current_belt_grade", sa.String(length=50), nullable=True),
        sa.Column("tfi_id_no", sa.String(length=64), nullable=True),
        sa.Column("dan_certificate_no", sa.String(length=64), nullable=True),
        sa.Column("academic_qualification", sa.String(length=150), nullable=True),
        sa.Column("name_of_college", sa.String(length=200), nullable=True),
        sa.Column("name_of_board_university", sa.String(length=200), nullable=True),
    )
    _partial_unique("uix_poomsae_entries_tfi_id_no", "poomsae_entries", "tfi_id_no")
    op.create_index(
        "ix_poomsae_entries_state_district", "poomsae_entries", ["state_org", "district"]
    )
    op.create_index("ix_poomsae_entries_created_at", "poomsae_entries", ["created_at"])

    op.create_table(
        "certificates",
        *_entry_columns("certificates"),
        sa.Column("name", sa.String(length=150), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("grade", sa.String(length=50), nullable=False),
        sa.Column(
            "generated_by",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("state", sa.String(length=100), nullable=True),
        sa.Column("district", sa.String(length=100), nullable=True),
    )
    op.create_index("ix_certificates_state_district", "certificates", ["state", "district"])
    op.create_index("ix_certificates_created_at", "certificates", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_certificates_created_at", table_name="certificates")
    op.drop_index("ix_certificates_state_district", table_name="certificates")
    op.drop_table("certificates")
    op.drop_index("ix_poomsae_entries_created_at", table_name="poomsae_entries")
    op.drop_index("ix_poomsae_entries_state_district", table_name="poomsae_entries")
    op.drop_index("uix_poomsae_entries_tfi_id_no", table_name="poomsae_entries")
    op.drop_table("poomsae_entries")
    op.drop_index("ix_cadets_created_at", table_name="cadets")
    op.drop_index("ix_cadets_state_district", table_name="cadets")
    op.drop_index("uix_cadets_tfi_id_card_no", table_name="cadets")
    op.drop_table("cadets")
