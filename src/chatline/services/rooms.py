"""Canonical room ids for two-party conversations."""

ROOM_SEPARATOR = "-"


def room_for(id_a: str, id_b: str) -> str:
    """Return the broadcast room shared by two users.

    The pair is sorted first, so ``room_for(a, b) == room_for(b, a)``.
    """
    first, second = sorted((id_a, id_b))
    return f"{first}{ROOM_SEPARATOR}{second}"
