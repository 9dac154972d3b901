"""ActivityPub protocol types and utilities for the Finger gateway.

Covers the subset of ActivityPub/ActivityStreams and WebFinger needed to read
an account's latest public posts, plus the documents describing the gateway's
own actor.

References:
- ActivityPub spec: https://www.w3.org/TR/activitypub/
- ActivityStreams 2.0: https://www.w3.org/TR/activitystreams-core/
- WebFinger: https://www.rfc-editor.org/rfc/rfc7033
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from enum import Enum
from typing import Any, ClassVar, TypeAlias

import lxml.html

# JSON-LD contexts for ActivityPub
ACTIVITY_STREAMS_CONTEXT = "https://www.w3.org/ns/activitystreams"
SECURITY_CONTEXT = "https://w3id.org/security/v1"

AP_CONTEXT: list[str] = [
    ACTIVITY_STREAMS_CONTEXT,
    SECURITY_CONTEXT,
]

# Content types
AP_CONTENT_TYPE = "application/activity+json"
AP_LD_CONTENT_TYPE = f'application/ld+json; profile="{ACTIVITY_STREAMS_CONTEXT}"'
JRD_CONTENT_TYPE = "application/jrd+json"

WEBFINGER_PROFILE_PAGE_REL = "http://webfinger.net/rel/profile-page"

# Type aliases
JsonDict: TypeAlias = dict[str, Any]

ADDRESS_PATTERN = re.compile(r"^@[^@]+@[^@]+$")

PUBLISHED_FORMAT = "%Y-%m-%d, %H:%M"


class ActivityType(str, Enum):
    """Outbox activity types the gateway understands."""
    CREATE = "Create"
    ANNOUNCE = "Announce"  # Boost/reblog


class ObjectType(str, Enum):
    """ActivityPub object types."""
    PERSON = "Person"
    NOTE = "Note"


# === Addresses ===

def is_valid_address(address: str) -> bool:
    """Check an address has the ``@user@host`` form."""
    return ADDRESS_PATTERN.match(address) is not None


def address_server(address: str) -> str:
    """Host part of an address (after the last ``@``)."""
    return address.rsplit("@", 1)[-1]


def address_acct(address: str) -> str:
    """Address without its leading ``@``, as used in ``acct:`` URIs."""
    return address.removeprefix("@")


# === Normalized posts ===

@dataclass
class Attachment:
    """Media attached to a post."""
    url: str


@dataclass
class Note:
    """A post ready to be rendered as text."""
    published: str  # Local date-time, e.g. "2024-01-15, 14:30"
    content: str  # Plain text, paragraphs separated by blank lines
    attributed_to: str | None = None  # Set only for reposts
    attachment: list[Attachment] = field(default_factory=list)


# === Raw outbox items ===

@dataclass
class NoteObject:
    """A Note object as found in an outbox or fetched on its own."""
    id: str
    content: str
    published: str  # ISO-8601 instant
    attributed_to: str = ""
    in_reply_to: str | None = None
    attachment: list[str] = field(default_factory=list)  # URLs


@dataclass
class CreateItem:
    """Original post: the Note is embedded in the activity."""
    object: NoteObject
    type: ClassVar[ActivityType] = ActivityType.CREATE


@dataclass
class AnnounceItem:
    """Repost: the Note lives elsewhere and must be fetched."""
    object: str  # URL of the announced Note
    type: ClassVar[ActivityType] = ActivityType.ANNOUNCE


OutboxItem: TypeAlias = CreateItem | AnnounceItem


def _single(value: Any) -> Any:
    """First element of a list-valued property, or the value itself."""
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _object_id(value: Any) -> str | None:
    """Id of a property that may hold either a URL or an embedded object."""
    value = _single(value)
    if isinstance(value, dict):
        return value.get("id")
    return value


def parse_note_object(data: JsonDict) -> NoteObject:
    """Parse a Note object.

    Args:
        data: JSON-LD note document

    Returns:
        NoteObject instance

    Raises:
        KeyError: If ``published`` is missing
        TypeError: If ``data`` is not an object
    """
    if not isinstance(data, dict):
        raise TypeError(f"Expected a note object, got {type(data).__name__}")

    attachments = data.get("attachment") or []
    if isinstance(attachments, (dict, str)):
        attachments = [attachments]

    urls = []
    for attachment in attachments:
        url = _single(attachment.get("url")) if isinstance(attachment, dict) else attachment
        # Link objects carry the URL in href
        if isinstance(url, dict):
            url = url.get("href")
        if url:
            urls.append(url)

    return NoteObject(
        id=data.get("id", ""),
        content=data.get("content") or "",
        published=data["published"],
        attributed_to=_object_id(data.get("attributedTo")) or "",
        in_reply_to=_object_id(data.get("inReplyTo")),
        attachment=urls,
    )


def parse_outbox_item(data: JsonDict) -> OutboxItem | None:
    """Parse one ``orderedItems`` entry of an outbox page.

    Args:
        data: JSON-LD activity

    Returns:
        CreateItem or AnnounceItem, None for other activity types
    """
    activity_type = data.get("type")

    if activity_type == ActivityType.CREATE.value:
        return CreateItem(object=parse_note_object(data["object"]))
    elif activity_type == ActivityType.ANNOUNCE.value:
        target = _object_id(data.get("object"))
        if not target:
            return None
        return AnnounceItem(object=target)
    return None


def parse_outbox_page(data: JsonDict) -> list[OutboxItem]:
    """Parse the items of an OrderedCollectionPage, preserving order."""
    items = []
    for raw in data.get("orderedItems") or []:
        if not isinstance(raw, dict):
            continue
        try:
            item = parse_outbox_item(raw)
        except (KeyError, TypeError):
            # Create wrapping a bare object URL or a Note without a date
            continue
        if item is not None:
            items.append(item)
    return items


def find_webfinger_self_href(data: JsonDict) -> str | None:
    """Return the href of the ``rel == "self"`` link of a WebFinger JRD."""
    for link in data.get("links") or []:
        if link.get("rel") == "self":
            return link.get("href")
    return None


# === Normalization ===

def html_to_text(html_content: str) -> str:
    """Convert post HTML to plain text.

    Paragraphs are surrounded by line breaks and ``<br>`` becomes a line
    break, so consecutive paragraphs end up separated by a blank line.

    Args:
        html_content: HTML content

    Returns:
        Plain text content
    """
    if not html_content.strip():
        return ""

    root = lxml.html.fragment_fromstring(html_content, create_parent="div")

    for br in root.iter("br"):
        br.tail = "\n" + (br.tail or "")

    for paragraph in root.iter("p"):
        paragraph.text = "\n" + (paragraph.text or "")
        paragraph.tail = "\n" + (paragraph.tail or "")

    return root.text_content().strip()


def format_published(published: str, tz: tzinfo | None = None) -> str:
    """Render an ISO-8601 instant as a local date-time.

    Args:
        published: ISO-8601 timestamp (``Z`` suffix accepted)
        tz: Target time zone (defaults to the system zone)

    Returns:
        Formatted date, e.g. ``2024-01-15, 14:30``
    """
    instant = datetime.fromisoformat(published.replace("Z", "+00:00"))
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(tz).strftime(PUBLISHED_FORMAT)


def note_from_object(
    note_object: NoteObject,
    is_repost: bool,
    tz: tzinfo | None = None,
) -> Note:
    """Normalize a raw Note object.

    Args:
        note_object: Parsed Note
        is_repost: Whether the Note was reached through an Announce
        tz: Time zone for the published date (defaults to the system zone)

    Returns:
        Note ready for rendering
    """
    return Note(
        attributed_to=note_object.attributed_to if is_repost else None,
        published=format_published(note_object.published, tz),
        content=html_to_text(note_object.content),
        attachment=[Attachment(url=url) for url in note_object.attachment],
    )


# === Local actor ===

@dataclass
class PublicKey:
    """RSA public key for HTTP signatures."""
    id: str  # e.g., https://finger.example.com/alice#main-key
    owner: str  # Actor ID
    public_key_pem: str

    def to_dict(self) -> JsonDict:
        """Convert to ActivityPub JSON-LD format."""
        return {
            "id": self.id,
            "owner": self.owner,
            "publicKeyPem": self.public_key_pem,
        }


@dataclass
class Actor:
    """The gateway's own actor, published so signatures can be verified."""
    id: str
    preferred_username: str
    public_key: PublicKey
    type: ObjectType = ObjectType.PERSON

    @property
    def inbox(self) -> str:
        return f"{self.id}/inbox"

    @property
    def outbox(self) -> str:
        return f"{self.id}/outbox"

    def to_dict(self) -> JsonDict:
        """Convert to ActivityPub JSON-LD format."""
        return {
            "@context": AP_CONTEXT,
            "id": self.id,
            "type": self.type.value,
            "preferredUsername": self.preferred_username,
            "inbox": self.inbox,
            "outbox": self.outbox,
            "publicKey": self.public_key.to_dict(),
        }


def create_actor(base_url: str, user_name: str, public_key_pem: str) -> Actor:
    """Create the local Actor.

    Args:
        base_url: Public base URL (e.g., https://finger.example.com)
        user_name: Local account name
        public_key_pem: RSA public key in PEM format

    Returns:
        Actor instance
    """
    actor_url = f"{base_url.rstrip('/')}/{user_name}"
    return Actor(
        id=actor_url,
        preferred_username=user_name,
        public_key=PublicKey(
            id=f"{actor_url}#main-key",
            owner=actor_url,
            public_key_pem=public_key_pem,
        ),
    )


def create_webfinger_document(server_name: str, actor_url: str, user_name: str) -> JsonDict:
    """Create the WebFinger JRD for the local actor."""
    return {
        "subject": f"acct:{user_name}@{server_name}",
        "aliases": [
            actor_url,
        ],
        "links": [
            {
                "rel": WEBFINGER_PROFILE_PAGE_REL,
                "type": "text/html",
                "href": actor_url,
            },
            {
                "rel": "self",
                "type": AP_CONTENT_TYPE,
                "href": actor_url,
            },
        ],
    }
