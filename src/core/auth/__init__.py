"""
Credentials and bearer tokens.
"""

from .credentials import Principal, TokenService, hash_password, verify_password

__all__ = ["Principal", "TokenService", "hash_password", "verify_password"]
