"""Doctor model definition using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    func,
)

from app.models.base import metadata

doctors = Table(
    "doctors",
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
    # Professional credentials
    Column("specialty", String(100), nullable=False, index=True),
    Column("qualifications", String(500)),
    Column("license_number", String(10)),
    Column("experience_years", Integer, nullable=False, default=0),
    # Practice information
    Column("consultation_fee", Numeric(10, 2), nullable=False, default=0),
    Column("availability", String(500)),
    Column("location", String(100)),
    Column("bio", String(1000)),
    Column("profile_image", String(255)),
    # Soft delete
    Column("is_active", Boolean, nullable=False, default=True),
    # Metadata
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True)),
)
