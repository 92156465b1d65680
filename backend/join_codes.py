"""
Join code generation.

Codes are 6 characters from A-Z0-9. Allocation probes the store a bounded
number of times; when every attempt collides the last code is used anyway and
the campaigns primary key decides.
"""
import logging
import random
import string
from typing import Callable, Optional

from backend.config import CODE_ATTEMPTS

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6


def generate_code(rng: Optional[random.Random] = None) -> str:
    """Generate a random 6-character join code."""
    chooser = rng or random
    return ''.join(chooser.choices(CODE_ALPHABET, k=CODE_LENGTH))


def allocate_code(
    exists: Callable[[str], bool],
    generate: Callable[[], str] = generate_code,
    attempts: int = CODE_ATTEMPTS,
) -> str:
    """
    Return a code that `exists` reports as unused, trying at most `attempts` times.

    Args:
        exists: Lookup returning True when the code is already taken
        generate: Code factory
        attempts: Probe budget

    Returns:
        A 6-character code. Only probably unique: after the budget is spent the
        last generated code is returned even if it collided.
    """
    code = generate()
    for attempt in range(1, attempts + 1):
        if not exists(code):
            return code
        logger.debug(f"Join code collision on attempt {attempt}: {code}")
        if attempt < attempts:
            code = generate()

    logger.warning(f"Join code budget of {attempts} attempts exhausted, using {code}")
    return code
