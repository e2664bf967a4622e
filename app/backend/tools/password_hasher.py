from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

# Stored as werkzeug's "method$salt$hash" string, scrypt by default.
PASSWORD_METHOD = "scrypt"


def hash_password(password: str) -> str:
    return generate_password_hash(password, method=PASSWORD_METHOD)


def verify_password(password: str, stored: Optional[str]) -> bool:
    """False for accounts without a usable hash."""
    if not stored:
        return False
    return check_password_hash(stored, password)
