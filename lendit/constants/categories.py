"""Item category constants: the single source of truth for the backend."""

VALID_CATEGORIES = {
    'tools',
    'garden',
    'electronics',
    'camping',
    'sports',
    'kitchen',
    'party',
    'music',
    'photography',
    'books',
    'games',
    'baby',
    'vehicles',
    'other',
}

# Legacy key -> current key mapping
LEGACY_CATEGORY_MAP = {
    'power-tools': 'tools',
    'hand-tools': 'tools',
    'diy': 'tools',
    'gardening': 'garden',
    'lawn-care': 'garden',
    'tech': 'electronics',
    'gadgets': 'electronics',
    'outdoor': 'camping',
    'hiking': 'camping',
    'fitness': 'sports',
    'bikes': 'vehicles',
    'bicycles': 'vehicles',
    'cooking': 'kitchen',
    'events': 'party',
    'instruments': 'music',
    'camera': 'photography',
    'cameras': 'photography',
    'board-games': 'games',
    'toys': 'baby',
}


def normalize_category(category: str) -> str:
    """Normalize a category key.

    - Lowercases and strips whitespace
    - Converts legacy keys to their current equivalents
    - Returns the key as-is if it's already valid or unknown
    """
    key = category.lower().strip()
    return LEGACY_CATEGORY_MAP.get(key, key)


def validate_category(category: str) -> tuple[str, str | None]:
    """Validate and normalize a category.

    Returns:
        (normalized_key, error_message)
        error_message is None when valid.
    """
    normalized = normalize_category(category)
    if normalized not in VALID_CATEGORIES:
        return normalized, (
            f"Invalid category '{category}'. "
            f"Valid categories: {', '.join(sorted(VALID_CATEGORIES))}"
        )
    return normalized, None
