"""ULID generation helper utilities."""

import ulid


def generate_ulid() -> str:
    """Generate a new ULID string; used as the primary key of every table."""
    return str(ulid.ULID())
