from passlib.hash import bcrypt

from mangabook.config import BCRYPT_ROUNDS

_hasher = bcrypt.using(rounds=BCRYPT_ROUNDS)


def hash_secret(plain: str) -> str:
    """Salted bcrypt hash; used for passwords and recovery words alike."""
    return _hasher.hash(plain)


def verify_secret(plain: str, hashed: str) -> bool:
    if not hashed:
        return False
    return bcrypt.verify(plain, hashed)
