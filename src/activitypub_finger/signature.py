"""HTTP Signatures for outbound ActivityPub requests.

Remote servers (Mastodon in particular) refuse unsigned fetches of actors and
outboxes when running in authorized-fetch mode. Every GET therefore carries a
``Signature`` header over ``(request-target)``, ``host`` and ``date``, signed
with RSA-SHA256 using the gateway's identity key.
"""

import base64
from datetime import datetime, timezone
from urllib.parse import urlsplit

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from .identity import Identity

SIGNED_HEADERS = ["(request-target)", "host", "date"]


class HttpSignature:
    """Signs messages with the identity's private key."""

    def __init__(self, identity: Identity):
        """Initialize signer.

        Args:
            identity: Key-pair provider
        """
        self.identity = identity

    def sign(self, data: bytes) -> bytes:
        """Sign bytes with RSASSA-PKCS1-v1_5 / SHA-256."""
        return self.identity.get_private_key().sign(
            data,
            padding.PKCS1v15(),
            hashes.SHA256(),
        )

    def base64_sign(self, data: str) -> str:
        """Sign the UTF-8 encoding of a string and base64-encode the result."""
        return base64.b64encode(self.sign(data.encode("utf-8"))).decode()

    def get_public_key_pem(self) -> str:
        """Public key as published in the local actor document."""
        return self.identity.get_public_key_pem()


def format_http_date(now: datetime | None = None) -> str:
    """Format a timestamp as an HTTP date (RFC 7231 IMF-fixdate).

    Args:
        now: Timestamp to format (defaults to current time)

    Returns:
        Date string such as ``Mon, 01 Jan 2024 00:00:00 GMT``
    """
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%a, %d %b %Y %H:%M:%S GMT")


def request_target(method: str, url: str) -> str:
    """Build the ``(request-target)`` pseudo-header value for a URL."""
    parsed = urlsplit(url)
    path = parsed.path or "/"
    if parsed.query:
        path += f"?{parsed.query}"
    return f"{method.lower()} {path}"


def create_signature_string(method: str, url: str, date: str) -> str:
    """Create the string to sign for a request.

    Args:
        method: HTTP method
        url: Full request URL
        date: Value of the ``date`` header

    Returns:
        Signature string, one ``name: value`` line per signed header
    """
    host = urlsplit(url).netloc
    return (
        f"(request-target): {request_target(method, url)}\n"
        f"host: {host}\n"
        f"date: {date}"
    )


def build_signature_headers(
    url: str,
    signer: HttpSignature,
    key_id: str,
    method: str = "get",
    now: datetime | None = None,
) -> dict[str, str]:
    """Create the signed headers for one outbound request.

    Args:
        url: Full request URL
        signer: Signer holding the identity key
        key_id: Public key id advertised in the signature
        method: HTTP method
        now: Request time (defaults to current time)

    Returns:
        ``host``, ``date`` and ``signature`` headers
    """
    date = format_http_date(now)
    sig_string = create_signature_string(method, url, date)
    sig_b64 = signer.base64_sign(sig_string)

    return {
        "host": urlsplit(url).netloc,
        "date": date,
        "signature": (
            f'keyId="{key_id}",'
            f'headers="{" ".join(SIGNED_HEADERS)}",'
            f'signature="{sig_b64}"'
        ),
    }
