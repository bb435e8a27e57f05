"""Local mirror of identity provider users, with activity streaks."""

from .models import USERS_TABLES_CQL, User


__all__ = ["USERS_TABLES_CQL", "User"]
