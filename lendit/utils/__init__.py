"""Shared utilities for the lending backend.

This package contains reusable utilities that are shared across
multiple route files to reduce code duplication.
"""

from lendit.utils.auth import token_required, token_optional, create_token
from lendit.utils.user_helpers import get_display_name, get_full_name

__all__ = [
    'token_required',
    'token_optional',
    'create_token',
    'get_display_name',
    'get_full_name',
]
