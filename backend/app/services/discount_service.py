# /app/services/discount_service.py

import random
from typing import Optional

from app.config.settings import settings

# Visually similar characters (0/O, 1/I/L) are left out so codes can be read aloud and retyped.
DISCOUNT_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
DISCOUNT_CODE_LENGTH = 5


def generate_discount_code(prefix: Optional[str] = None) -> str:
    """Returns e.g. 'COMEBACK7KQ2M'. Codes are informational, not secrets; collisions are not checked."""
    prefix = settings.discount_code_prefix if prefix is None else prefix
    suffix = "".join(random.choice(DISCOUNT_CODE_ALPHABET) for _ in range(DISCOUNT_CODE_LENGTH))
    return f"{prefix}{suffix}"
