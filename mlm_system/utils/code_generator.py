"""
Public distributor codes, e.g. NEON-7K2QX9.
"""
import logging
import secrets
import string
from typing import Callable, Optional

from config import Config
from core.errors import ConflictError

logger = logging.getLogger(__name__)

# No 0/O or 1/I so codes survive being read aloud
CODE_ALPHABET = "".join(c for c in string.ascii_uppercase + string.digits if c not in "0O1I")


def generate_code(prefix: Optional[str] = None, length: Optional[int] = None) -> str:
    """
    Generate one candidate code.

    Returns:
        "{PREFIX}-{ALNUM}" string
    """
    prefix = prefix or Config.get(Config.DISTRIBUTOR_CODE_PREFIX)
    length = length or Config.get(Config.DISTRIBUTOR_CODE_LENGTH)
    suffix = ''.join(secrets.choice(CODE_ALPHABET) for _ in range(length))
    return f"{prefix}-{suffix}"


def generate_unique_code(
        exists: Callable[[str], bool],
        attempts: Optional[int] = None,
        generator: Callable[[], str] = generate_code
) -> str:
    """
    Generate a code not yet taken.

    Args:
        exists: Function(code) -> True if the code is already used
        attempts: Maximum candidates to try
        generator: Candidate source

    Raises:
        ConflictError: Every candidate collided
    """
    attempts = attempts or Config.get(Config.CODE_GENERATION_ATTEMPTS)

    for attempt in range(1, attempts + 1):
        code = generator()
        if not exists(code):
            return code
        logger.warning(f"Distributor code collision on {code} (attempt {attempt}/{attempts})")

    raise ConflictError(f"Could not generate a unique distributor code after {attempts} attempts")
