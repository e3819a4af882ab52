from __future__ import annotations

import base64
import hashlib
import hmac
import time
from typing import Optional
from urllib.parse import quote, urlencode


class LinkSignatureError(ValueError):
    pass


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64url_decode(data: str) -> bytes:
    padding = "=" * ((4 - len(data) % 4) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _signature(secret: str, reference: str, expires_at: int) -> bytes:
    # read-only is the only permission a link can carry
    msg = f"r\n{reference}\n{expires_at}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), msg, hashlib.sha256).digest()


def sign_link(
    *,
    secret: str,
    base_url: str,
    reference: str,
    ttl_sec: int,
    now_ts: Optional[int] = None,
) -> str:
    """Read-only retrieval URL for `reference`, valid for ttl_sec."""
    if not secret:
        raise LinkSignatureError("LINK_SIGNING_SECRET is not set")
    ts = int(time.time() if now_ts is None else now_ts)
    expires_at = ts + int(ttl_sec)
    sig = _b64url_encode(_signature(secret, reference, expires_at))
    query = urlencode({"sp": "r", "se": expires_at, "sig": sig})
    return f"{base_url.rstrip('/')}/{quote(reference)}?{query}"


def verify_link(
    *,
    secret: str,
    reference: str,
    expires_at: int,
    sig: str,
    now_ts: Optional[int] = None,
) -> None:
    if not secret:
        raise LinkSignatureError("LINK_SIGNING_SECRET is not set")
    ts = int(time.time() if now_ts is None else now_ts)
    try:
        got = _b64url_decode(sig)
    except Exception as exc:
        raise LinkSignatureError("invalid link signature") from exc
    if not hmac.compare_digest(got, _signature(secret, reference, int(expires_at))):
        raise LinkSignatureError("invalid link signature")
    if ts > int(expires_at):
        raise LinkSignatureError("link expired")
