"""
Authentication module for Chronicle.

Provides JWT token generation, verification, and authentication dependencies.
"""

from .jwt import (
    create_access_token,
    verify_token,
    get_current_identity,
    get_current_identity_optional,
    Identity,
)

__all__ = [
    'create_access_token',
    'verify_token',
    'get_current_identity',
    'get_current_identity_optional',
    'Identity',
]
