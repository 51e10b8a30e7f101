from werkzeug.security import check_password_hash, generate_password_hash


def hash_password(password: str) -> str:
    """Salted KDF hash (werkzeug default method, scrypt on current releases)."""
    return generate_password_hash(password)


def verify_password(password_hash: str | None, password: str) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)
