import hashlib
import hmac

from fastapi import HTTPException, Request, status

from linkworker import schemas


def extract_password(request: Request, body: schemas.LinkRequest | None = None) -> str | None:
    """Bearer token from the Authorization header, else the body ``password``."""
    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[len("Bearer "):]
    if body is not None and body.password:
        return body.password
    return None

def verify_password(password: str | None, secret: str | None) -> bool:
    # Hash first so compare_digest always sees equal-length inputs
    if not password or not secret:
        return False
    supplied = hashlib.sha256(password.encode("utf-8")).digest()
    expected = hashlib.sha256(secret.encode("utf-8")).digest()
    return hmac.compare_digest(supplied, expected)

def require_password(request: Request, body: schemas.LinkRequest | None, secret: str) -> None:
    if not verify_password(extract_password(request, body), secret):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid password.")
