"""MediQueue walk-in clinic queue service."""
