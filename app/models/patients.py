"""Patient model definition using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    func,
)

from app.models.base import metadata

patients = Table(
    "patients",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    ),
    Column("name", String(100), nullable=False),
    Column("email", String(100), nullable=False),
    Column("phone", String(15), nullable=False, default=""),
    # Personal health information
    Column("birthdate", Date),
    Column("address", String(255)),
    Column("blood_type", String(10)),
    Column("medical_history", String(500)),
    Column("allergies", String(500)),
    # Emergency contact
    Column("emergency_contact", String(50)),
    Column("emergency_contact_phone", String(100)),
    # Soft delete
    Column("is_active", Boolean, nullable=False, default=True),
    # Metadata
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True)),
)
