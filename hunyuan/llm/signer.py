"""
TC3-HMAC-SHA256 request signing for Tencent Cloud APIs.

The algorithm is fixed by the provider:

  1. Canonical request -- method, URI, query, lower-cased sorted headers,
     signed-header list and the SHA-256 hex digest of the body.
  2. String to sign -- algorithm tag, timestamp, credential scope
     (``date/service/tc3_request``) and the digest of the canonical request.
  3. Signing key -- HMAC chain seeded with ``"TC3" + secret_key`` over the
     UTC date, the service name and the terminator ``tc3_request``.
  4. Signature -- hex HMAC of the string to sign under the signing key.

Everything is recomputed per call attempt; a signature is only valid for a
few minutes around its timestamp.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from dataclasses import dataclass
from datetime import datetime, timezone

from hunyuan.errors import ConfigurationError

ALGORITHM = "TC3-HMAC-SHA256"
TERMINATOR = "tc3_request"
CONTENT_TYPE = "application/json; charset=utf-8"
HTTP_METHOD = "POST"
CANONICAL_URI = "/"
CANONICAL_QUERY = ""


def _sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _hmac_sha256(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


@dataclass(frozen=True)
class SigningContext:
    """Intermediate values of one signature. Never persisted."""

    timestamp: int
    date: str
    credential_scope: str
    signed_headers: str
    canonical_request: str
    string_to_sign: str
    signing_key: bytes
    signature: str


class RequestSigner:
    """
    Derives the authentication headers for one outbound call.

    Holds only the two long-lived credentials; safe to share between
    concurrent calls.

    Parameters
    ----------
    secret_id:
        Public half of the credential pair, sent in the ``Credential`` field.
    secret_key:
        Private half; seeds the signing-key derivation and never leaves
        the process.
    version:
        API version sent in ``X-TC-Version``.
    region:
        Optional ``X-TC-Region`` value.
    """

    def __init__(
        self,
        secret_id: str,
        secret_key: str,
        *,
        version: str = "2023-09-01",
        region: str = "",
    ) -> None:
        if not secret_id or not secret_key:
            missing = "secret_id" if not secret_id else "secret_key"
            raise ConfigurationError(
                f"Cannot sign requests: {missing} is empty",
                hint="Set HUNYUAN_SECRET_ID and HUNYUAN_SECRET_KEY or the credentials config section.",
            )
        self._secret_id = secret_id
        self._secret_key = secret_key
        self._version = version
        self._region = region

    @property
    def secret_id(self) -> str:
        return self._secret_id

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def sign(
        self,
        service: str,
        host: str,
        action: str,
        body: bytes,
        timestamp: int | None = None,
    ) -> SigningContext:
        """Compute every intermediate value of the signature."""
        ts = int(time.time()) if timestamp is None else int(timestamp)
        date = datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d")

        headers = {
            "Content-Type": CONTENT_TYPE,
            "Host": host,
            "X-TC-Action": action,
        }
        canonical_items = sorted(
            (name.lower(), value.strip().lower()) for name, value in headers.items()
        )
        canonical_headers = "".join(f"{name}:{value}\n" for name, value in canonical_items)
        signed_headers = ";".join(name for name, _ in canonical_items)

        canonical_request = "\n".join(
            [
                HTTP_METHOD,
                CANONICAL_URI,
                CANONICAL_QUERY,
                canonical_headers,
                signed_headers,
                _sha256_hex(body),
            ]
        )

        credential_scope = f"{date}/{service}/{TERMINATOR}"
        string_to_sign = "\n".join(
            [
                ALGORITHM,
                str(ts),
                credential_scope,
                _sha256_hex(canonical_request.encode("utf-8")),
            ]
        )

        secret_date = _hmac_sha256(("TC3" + self._secret_key).encode("utf-8"), date)
        secret_service = _hmac_sha256(secret_date, service)
        signing_key = _hmac_sha256(secret_service, TERMINATOR)
        signature = hmac.new(
            signing_key, string_to_sign.encode("utf-8"), hashlib.sha256
        ).hexdigest()

        return SigningContext(
            timestamp=ts,
            date=date,
            credential_scope=credential_scope,
            signed_headers=signed_headers,
            canonical_request=canonical_request,
            string_to_sign=string_to_sign,
            signing_key=signing_key,
            signature=signature,
        )

    def headers(
        self,
        service: str,
        host: str,
        action: str,
        body: bytes,
        timestamp: int | None = None,
    ) -> dict[str, str]:
        """Return the headers to merge into the outbound request."""
        ctx = self.sign(service, host, action, body, timestamp)
        authorization = (
            f"{ALGORITHM} "
            f"Credential={self._secret_id}/{ctx.credential_scope}, "
            f"SignedHeaders={ctx.signed_headers}, "
            f"Signature={ctx.signature}"
        )
        result = {
            "Authorization": authorization,
            "Content-Type": CONTENT_TYPE,
            "Host": host,
            "X-TC-Action": action,
            "X-TC-Timestamp": str(ctx.timestamp),
            "X-TC-Version": self._version,
        }
        if self._region:
            result["X-TC-Region"] = self._region
        return result
