"""User model definition using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Integer,
    String,
    Table,
    func,
)

from app.models.base import metadata

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    # Credentials
    Column("email", String(100), nullable=False, unique=True, index=True),
    Column("password_hash", String(255), nullable=False),
    Column("role", String(20), nullable=False, index=True),
    # Profile info
    Column("name", String(100), nullable=False),
    Column("date_of_birth", Date),
    Column("contact_number", String(15)),
    Column("gender", String(10)),
    Column("blood_group", String(10)),
    Column("address", String(255)),
    # Account state
    Column("is_active", Boolean, nullable=False, default=True),
    # Audit
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True)),
    CheckConstraint("role IN ('Admin', 'Doctor', 'Patient')", name="users_role_check"),
)
