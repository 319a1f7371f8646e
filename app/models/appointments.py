"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Time,
    func,
    text,
)

from app.models.base import metadata

# Rows that still hold their slot
ACTIVE_SLOT_PREDICATE = text("status <> 'Cancelled'")

appointments = Table(
    "appointments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    # Ownership / references
    Column(
        "doctor_id",
        Integer,
        ForeignKey("doctors.id", ondelete="RESTRICT"),
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
    # Scheduling: calendar day and time of day are stored separately
    Column("appointment_date", Date, nullable=False, index=True),
    Column("appointment_time", Time, nullable=False),
    # Status management
    Column("status", String(20), nullable=False, default="Pending", index=True),
    # Clinical fields
    Column("notes", String(1000)),
    Column("prescription", String(1000)),
    Column("diagnosis", String(500)),
    # Billing: fee is a snapshot of the doctor's fee at booking time
    Column("fee", Numeric(10, 2)),
    Column("payment_status", String(20), nullable=False, default="Pending"),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True)),
    Column("cancelled_at", DateTime(timezone=True)),
    # Constraints
    CheckConstraint(
        "status IN ('Pending', 'Confirmed', 'Completed', 'Cancelled', 'Rescheduled')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "payment_status IN ('Pending', 'Paid', 'Cancelled')",
        name="appointments_payment_status_check",
    ),
    # At most one non-cancelled appointment per doctor slot
    Index(
        "uq_appointments_doctor_slot",
        "doctor_id",
        "appointment_date",
        "appointment_time",
        unique=True,
        postgresql_where=ACTIVE_SLOT_PREDICATE,
        sqlite_where=ACTIVE_SLOT_PREDICATE,
    ),
)
