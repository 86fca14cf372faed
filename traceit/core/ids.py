import secrets
import string

from .config import ID_LENGTH

# URL-safe alphabet, 64 symbols
ALPHABET = string.ascii_letters + string.digits + "_-"


def new_id(size: int = ID_LENGTH) -> str:
    """
    Random short id. Uniqueness is left to the primary key on insert.
    """
    return "".join(secrets.choice(ALPHABET) for _ in range(size))
