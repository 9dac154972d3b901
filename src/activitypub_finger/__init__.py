"""ActivityPub to Finger gateway.

Lets legacy Finger clients read the latest public posts of a Fediverse
account: ``finger @user@example.social@finger.example.com``.

Key components:
- text: Fixed-width word wrapping
- identity: Local RSA key pair and user name
- signature: HTTP Signatures for outbound requests
- activitypub_types: ActivityPub/WebFinger types and normalization
- activitypub_client: WebFinger -> actor -> outbox -> posts pipeline
- scope: Task scope shared by connections and concurrent fetches
- finger: Finger protocol server
- http_server: Actor and WebFinger endpoints for signature verification
- config: Pydantic configuration management
- main: Process entry point
"""

__version__ = "1.0.0"

from .activitypub_client import ActivityPubClient, ActivityPubError
from .activitypub_types import (
    ActivityType,
    Actor,
    AnnounceItem,
    Attachment,
    CreateItem,
    Note,
    NoteObject,
    PublicKey,
    is_valid_address,
)
from .config import (
    ClientConfig,
    FingerConfig,
    GatewayConfig,
    HttpConfig,
    IdentityConfig,
    load_config,
)
from .finger import FingerServer
from .identity import Identity, IdentityError, generate_rsa_keypair
from .scope import TaskScope
from .signature import HttpSignature, build_signature_headers
from .text import wrapped

__all__ = [
    # Client
    "ActivityPubClient",
    "ActivityPubError",
    # Types
    "ActivityType",
    "Actor",
    "AnnounceItem",
    "Attachment",
    "CreateItem",
    "Note",
    "NoteObject",
    "PublicKey",
    "is_valid_address",
    # Config
    "ClientConfig",
    "FingerConfig",
    "GatewayConfig",
    "HttpConfig",
    "IdentityConfig",
    "load_config",
    # Finger
    "FingerServer",
    # Identity
    "Identity",
    "IdentityError",
    "generate_rsa_keypair",
    # Concurrency
    "TaskScope",
    # Signatures
    "HttpSignature",
    "build_signature_headers",
    # Text
    "wrapped",
]
