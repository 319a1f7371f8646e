"""Payment model definition using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
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

payments = Table(
    "payments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "appointment_id",
        Integer,
        ForeignKey("appointments.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    ),
    Column(
        "patient_id",
        Integer,
        ForeignKey("patients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    ),
    Column("amount", Numeric(10, 2), nullable=False),
    Column("payment_method", String(20), nullable=False),
    Column("status", String(20), nullable=False, default="Pending"),
    Column("transaction_id", String(100), unique=True),
    Column("payment_gateway", String(100)),
    Column("description", String(500)),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("completed_at", DateTime(timezone=True)),
    CheckConstraint(
        "status IN ('Pending', 'Completed', 'Failed', 'Refunded')",
        name="payments_status_check",
    ),
    CheckConstraint(
        "payment_method IN ('Cash', 'Card', 'Online', 'Bank Transfer')",
        name="payments_method_check",
    ),
)
