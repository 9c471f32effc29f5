import bcrypt
from flask import current_app, has_app_context

DEFAULT_ROUNDS = 12

def _rounds() -> int:
    if has_app_context():
        return current_app.config.get("BCRYPT_ROUNDS", DEFAULT_ROUNDS)
    return DEFAULT_ROUNDS

def hash_password(plain_password: str) -> str:
    if not isinstance(plain_password, str) or len(plain_password) == 0:
        raise ValueError("Password must be a non-empty string")

    # bcrypt works on bytes and stores its salt and cost inside the hash
    hashed = bcrypt.hashpw(plain_password.encode("utf-8"), bcrypt.gensalt(rounds=_rounds()))
    return hashed.decode("utf-8")

def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False
