"""Rate limiting configuration using slowapi.

The module-level Limiter is wired into the FastAPI app in main.py; clock and
leave-application routes apply tighter per-route limits.
"""

from typing import Optional

from fastapi import Request
from jose import JWTError, jwt
from slowapi import Limiter
from slowapi.util import get_remote_address

from hrops.config import settings


def client_ip(request: Request) -> Optional[str]:
    """Originating address: first ``X-Forwarded-For`` hop, then ``X-Real-IP``."""
    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    return request.client.host if request.client else None


def client_key(request: Request) -> str:
    """Bucket by token subject so employees behind one office NAT don't share limits.

    The claim is read unverified; a forged subject only moves the caller into
    another bucket, and authentication still rejects the request.
    """
    auth = request.headers.get("authorization", "")
    scheme, _, token = auth.partition(" ")
    if scheme.lower() == "bearer" and token:
        try:
            sub = jwt.get_unverified_claims(token).get("sub")
        except JWTError:
            sub = None
        if sub:
            return f"user:{sub}"
    return get_remote_address(request)


limiter = Limiter(
    key_func=client_key,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
)
