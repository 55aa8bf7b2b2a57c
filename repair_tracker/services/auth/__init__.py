"""
Auth Domain Services
====================

Session token dan OAuth account
"""

from .auth_service import AuthService

__all__ = [
    'AuthService'
]
