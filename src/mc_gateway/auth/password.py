"""bcrypt password hashing (the ``bcrypt`` package, no passlib wrapper)."""

import bcrypt


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash as text, ready for users.password_hash."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
