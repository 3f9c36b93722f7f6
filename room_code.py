"""Room codes: short, human-shareable identifiers such as ``GATE-2345``.

The alphabet leaves out 0/O and 1/I/L so codes survive being read aloud or
copied by hand. The canonical form (8 uppercase symbols, no dash) is the
routing key; the display form splits it 4+4.
"""
import re
import secrets
from typing import Optional

ROOM_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 8
MAX_RAW_CODE_LENGTH = 20

_SEPARATORS = re.compile(r"[-\s]")


def generate_room_code() -> str:
    """Return a fresh display-form code drawn from a CSPRNG."""
    canonical = "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))
    return format_room_code(canonical)


def parse_room_code(value) -> Optional[str]:
    """Normalize user input to the canonical code, or None if it is not one.

    Dashes, whitespace and case are ignored. Anything longer than 20 raw
    characters is rejected before it is cleaned.
    """
    if not value or not isinstance(value, str):
        return None
    if len(value) > MAX_RAW_CODE_LENGTH:
        return None
    cleaned = _SEPARATORS.sub("", value).upper()
    if len(cleaned) != ROOM_CODE_LENGTH:
        return None
    if any(ch not in ROOM_CODE_ALPHABET for ch in cleaned):
        return None
    return cleaned


def format_room_code(canonical: str) -> str:
    return f"{canonical[:4]}-{canonical[4:]}"
