"""Database models."""

from app.models.appointments import appointments
from app.models.base import metadata
from app.models.doctors import doctors
from app.models.feedbacks import feedbacks
from app.models.patients import patients
from app.models.payments import payments
from app.models.users import users

__all__ = [
    "appointments",
    "doctors",
    "feedbacks",
    "metadata",
    "patients",
    "payments",
    "users",
]
