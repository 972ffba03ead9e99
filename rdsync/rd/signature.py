from __future__ import annotations

import hashlib
import hmac
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

SIGNATURE_HEADER = "x-rd-signature"
TOKEN_HEADER = "x-webhook-token"
TOKEN_QUERY_PARAM = "token"

_SHA256_PREFIX = "sha256="

class AuthMethod(str, Enum):
    hmac = "hmac"
    token = "token"
    query = "query"
    none = "none"

@dataclass(frozen=True)
class AuthResult:
    valid: bool
    method: AuthMethod

_REJECTED = AuthResult(valid=False, method=AuthMethod.none)

def _same(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))

def sign_body(secret: str, raw_body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()

def verify_webhook_request(
    raw_body: bytes,
    headers: Mapping[str, str],
    query_params: Mapping[str, str],
    secret: str | None,
) -> AuthResult:
    """Decide whether an inbound RD webhook is authentic.

    Must run on the raw body, before any JSON parsing: the signature is
    computed over the exact bytes the sender put on the wire. Methods are
    tried in order (hmac header, token header, token query param) and the
    first match wins. Without a configured secret every request is
    rejected.
    """
    if not secret:
        return _REJECTED

    lowered = {k.lower(): v for k, v in headers.items()}

    signature = (lowered.get(SIGNATURE_HEADER) or "").strip().lower()
    if signature.startswith(_SHA256_PREFIX):
        signature = signature[len(_SHA256_PREFIX):]
    if signature and _same(sign_body(secret, raw_body), signature):
        return AuthResult(valid=True, method=AuthMethod.hmac)

    token = lowered.get(TOKEN_HEADER)
    if token and _same(token, secret):
        return AuthResult(valid=True, method=AuthMethod.token)

    query_token = query_params.get(TOKEN_QUERY_PARAM)
    if query_token and _same(query_token, secret):
        return AuthResult(valid=True, method=AuthMethod.query)

    return _REJECTED
