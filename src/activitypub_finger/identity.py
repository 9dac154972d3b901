"""Local identity for the gateway: a stable user name and an RSA key pair.

The key pair signs every outbound ActivityPub request. Its public half is
published in the local actor document so remote servers can verify those
signatures. The private key is persisted as PEM so the identity survives
restarts.
"""

import base64
import hashlib
import os
from pathlib import Path

import structlog
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

logger = structlog.get_logger()

RSA_KEY_SIZE = 2048


class IdentityError(Exception):
    """Key material could not be loaded or created."""
    pass


def generate_rsa_keypair() -> tuple[str, str]:
    """Generate RSA key pair for HTTP signatures.

    Returns:
        Tuple of (public_key_pem, private_key_pem)
    """
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=RSA_KEY_SIZE,
    )

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()

    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()

    return public_pem, private_pem


def user_name_from_public_key(public_key_pem: str) -> str:
    """Derive a stable local user name from a public key.

    Args:
        public_key_pem: Public key in PEM format

    Returns:
        Lowercase name, same for the same key
    """
    hash_bytes = hashlib.sha256(public_key_pem.encode()).digest()
    encoded = base64.b32encode(hash_bytes).decode().lower()[:12]
    return f"finger{encoded}"


class Identity:
    """Key-pair provider for the gateway's own ActivityPub account."""

    def __init__(self, private_key_path: str = "", user_name: str = ""):
        """Initialize identity.

        Args:
            private_key_path: PEM file holding the private key. Created when
                missing. Empty keeps a generated key in memory only.
            user_name: Local account name. Derived from the public key if empty.
        """
        self.private_key_path = private_key_path
        self._user_name = user_name
        self._private_key: rsa.RSAPrivateKey | None = None

    def load(self) -> None:
        """Load or create the key pair.

        Raises:
            IdentityError: If the key file exists but cannot be used, or a new
                key cannot be written
        """
        if self._private_key is not None:
            return

        path = Path(self.private_key_path) if self.private_key_path else None

        if path is not None and path.exists():
            try:
                private_key = serialization.load_pem_private_key(
                    path.read_bytes(),
                    password=None,
                )
            except (OSError, ValueError, TypeError) as e:
                raise IdentityError(f"Cannot read private key {path}: {e}") from e
            if not isinstance(private_key, rsa.RSAPrivateKey):
                raise IdentityError(f"Private key {path} is not an RSA key")
            self._private_key = private_key
            logger.info("Loaded identity key", path=str(path))
            return

        _, private_pem = generate_rsa_keypair()
        self._private_key = serialization.load_pem_private_key(
            private_pem.encode(),
            password=None,
        )

        if path is not None:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
                with os.fdopen(fd, "w") as f:
                    f.write(private_pem)
            except OSError as e:
                raise IdentityError(f"Cannot write private key {path}: {e}") from e
            logger.info("Created identity key", path=str(path))
        else:
            logger.warning("Identity key is not persisted, user name will change on restart")

    def get_private_key(self) -> rsa.RSAPrivateKey:
        """Return the private key, loading it on first use."""
        self.load()
        return self._private_key

    def get_public_key_pem(self) -> str:
        """Return the public key in SubjectPublicKeyInfo PEM format."""
        return self.get_private_key().public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode()

    @property
    def user_name(self) -> str:
        """Local account name used in the actor URL and key id."""
        if not self._user_name:
            self._user_name = user_name_from_public_key(self.get_public_key_pem())
        return self._user_name
