"""
Session Management Use Cases

Self-service and administrative session termination.
"""

from .manage_sessions_use_case import ManageSessionsUseCase, is_admin

__all__ = [
    "ManageSessionsUseCase",
    "is_admin",
]
