"""
Auth Module - identities, credentials and access control.

Features:
- Password hashing and signed session tokens
- Authorization gate over roles and permission flags
- Signup, login and password reset
- Admin user management
"""

from agora.modules.auth.gate import Decision, DenyReason, Identity, authorize, enforce
from agora.modules.auth.mailer import HttpMailer, Mailer
from agora.modules.auth.security import CredentialVerifier
from agora.modules.auth.service import AuthService

__all__ = [
    "AuthService",
    "CredentialVerifier",
    "Decision",
    "DenyReason",
    "HttpMailer",
    "Identity",
    "Mailer",
    "authorize",
    "enforce",
]
