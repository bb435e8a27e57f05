"""Course completion certificates, at most one per (user, course)."""

from .models import CERTIFICATES_TABLES_CQL, Certificate


__all__ = ["CERTIFICATES_TABLES_CQL", "Certificate"]
