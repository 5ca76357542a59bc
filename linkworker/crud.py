import hashlib
import re
import secrets
from urllib.parse import urlsplit

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from linkworker import models, schemas

# No 0/O, 1/I/l, 9/g, u/v and friends: codes get read aloud and retyped
ALPHABET = "ABCDEFGHJKMNPQRSTWXYZabcdefhijkmnprstwxyz2345678"
KEY_PATTERN = re.compile(r"[a-zA-Z0-9_-]{2,20}")
# Code points a URL host may not contain (brackets are already stripped for IPv6)
FORBIDDEN_HOST_CHARS = set('#%/<>?@[\\]^|"{}`\x7f')

# Static assets plus admin routes; GET_ONLY_KEYS have no file behind them
RESERVED_KEYS = {"index.html", "favicon.ico", "robots.txt", "github.svg", "r", "api", "api-auth"}
GET_ONLY_KEYS = {"r", "api", "api-auth"}


class KeyGenerationError(RuntimeError):
    """Raised when no free short key was found within the retry budget."""


# ---------- key-value primitives ----------

def get_value(db: Session, key: str) -> str | None:
    entry = db.query(models.KVEntry).filter_by(key=key).first()
    return entry.value if entry else None

def put_value(db: Session, key: str, value: str) -> None:
    db.merge(models.KVEntry(key=key, value=value))
    db.commit()

def put_if_absent(db: Session, key: str, value: str) -> bool:
    """Insert ``key`` only if nobody holds it yet; False when it was taken."""
    try:
        db.execute(insert(models.KVEntry).values(key=key, value=value))
        db.commit()
    except IntegrityError:
        db.rollback()
        return False
    return True


# ---------- policies ----------

def is_short_key(key: str) -> bool:
    return bool(KEY_PATTERN.fullmatch(key))

def check_url(url) -> bool:
    """Accept only absolute http(s) URLs that name a well-formed host."""
    if not isinstance(url, str):
        return False
    try:
        parts = urlsplit(url)
        parts.port  # out-of-range or non-numeric ports raise here
    except ValueError:
        return False
    if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
        return False
    return is_valid_host(parts.hostname)

def is_valid_host(hostname: str) -> bool:
    if any(ch.isspace() or ord(ch) < 0x20 or ch in FORBIDDEN_HOST_CHARS for ch in hostname):
        return False
    try:
        hostname.encode("idna")  # empty or over-long labels
    except UnicodeError:
        return False
    return True

def generate_code(length: int = 6) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))

def save_url(db: Session, url: str, length: int = 6, max_retries: int = 10) -> str:
    """Store ``url`` under a freshly minted key and return the key.

    Each attempt claims its candidate with a conditional insert, so two
    concurrent requests can never end up sharing a key.
    """
    for _ in range(max_retries):
        code = generate_code(length)
        if put_if_absent(db, code, url):
            return code
    raise KeyGenerationError(f"no free key after {max_retries} attempts")

def check_custom_key(db: Session, custom_key: str) -> schemas.CustomKeyCheck:
    if custom_key in RESERVED_KEYS:
        return schemas.CustomKeyCheck(available=False, error="This custom key is reserved.")
    if not is_short_key(custom_key):
        return schemas.CustomKeyCheck(
            available=False,
            error="Custom key must be 2-20 characters (letters, numbers, hyphens, underscores only)",
        )
    if get_value(db, custom_key) is not None:
        return schemas.CustomKeyCheck(available=False, error="Custom key already exists")
    return schemas.CustomKeyCheck(available=True)


# ---------- dedup index ----------

def url_digest(url: str) -> str:
    return hashlib.sha512(url.encode("utf-8")).hexdigest()

def find_existing_key(db: Session, url: str) -> str | None:
    return get_value(db, url_digest(url))

def index_url(db: Session, url: str, key: str) -> None:
    put_value(db, url_digest(url), key)

def delete_link(db: Session, key: str, unique_link: bool = False) -> bool:
    """Remove ``key``; in dedup mode also drop the digest entry pointing at it.

    Both rows go away in one commit.
    """
    entry = db.query(models.KVEntry).filter_by(key=key).first()
    if not entry:
        return False
    if unique_link:
        index = db.query(models.KVEntry).filter_by(key=url_digest(entry.value)).first()
        if index and index.value == key:
            db.delete(index)
    db.delete(entry)
    db.commit()
    return True
