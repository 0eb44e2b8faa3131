"""Shared user-related helper functions."""


def get_display_name(user):
    """
    Get the best display name for a user.
    
    Priority:
    1. nickname (if available)
    2. first_name (if available)
    3. username (if available)
    4. 'Someone' (fallback)
    """
    if not user:
        return 'Someone'
    if user.nickname:
        return user.nickname
    if user.first_name:
        return user.first_name
    return user.username or 'Someone'


def get_full_name(user, fallback):
    """First and last name, falling back to username, then ``fallback``."""
    if not user:
        return fallback
    full = f"{user.first_name or ''} {user.last_name or ''}".strip()
    return full or user.username or fallback
