import logging
import re

logger = logging.getLogger(__name__)

# PostgreSQL truncates identifiers longer than 63 bytes
MAX_IDENTIFIER_LENGTH = 63

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def is_safe_identifier(name: str) -> bool:
    """
    Check if the name can be used as a table or column name.
    """
    if not isinstance(name, str) or len(name) > MAX_IDENTIFIER_LENGTH:
        return False
    return bool(_IDENTIFIER_RE.match(name))


def validate_identifier(name: str) -> str:
    """
    Validate that the identifier is safe to compose into a query.
    """
    if not is_safe_identifier(name):
        logger.warning(f"Blocked unsafe SQL identifier: {name!r}")
        raise ValueError(f"Unsafe SQL identifier: {name!r}")
    return name
