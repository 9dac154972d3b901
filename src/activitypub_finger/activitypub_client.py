"""Client side of the ActivityPub resolution pipeline.

Turns an ``@user@host`` address into that account's latest posts:

1. WebFinger: address -> actor URL
2. Actor document -> outbox URL
3. Outbox collection -> first page URL
4. Outbox page -> posts (reposts fetched concurrently)

Each step makes a single attempt. Failures are logged and reported as None.
"""

import asyncio
from typing import Any

import aiohttp
import structlog

from .activitypub_types import (
    AP_CONTENT_TYPE,
    AnnounceItem,
    ActivityType,
    Note,
    NoteObject,
    OutboxItem,
    address_acct,
    address_server,
    find_webfinger_self_href,
    note_from_object,
    parse_note_object,
    parse_outbox_page,
)
from .identity import Identity
from .scope import TaskScope
from .signature import HttpSignature, build_signature_headers

logger = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_USER_AGENT = "ActivityPubFinger/1.0"


def is_reply(item: OutboxItem) -> bool:
    """Whether an outbox item is an original post answering another post."""
    return item.type == ActivityType.CREATE and item.object.in_reply_to is not None


class ActivityPubError(Exception):
    """Unexpected response from a remote ActivityPub server."""
    pass


class ActivityPubClient:
    """Fetches and normalizes posts from remote ActivityPub servers."""

    def __init__(
        self,
        identity: Identity,
        public_base_url: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        """Initialize client.

        Args:
            identity: Identity whose key signs outbound requests
            public_base_url: Public URL of the gateway's HTTP server, used to
                build the signature key id
            timeout_seconds: Connect, socket-read and total timeout per request
            user_agent: User-Agent header value
        """
        self.identity = identity
        self.signer = HttpSignature(identity)
        self.public_base_url = public_base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(
            total=timeout_seconds,
            connect=timeout_seconds,
            sock_read=timeout_seconds,
        )
        self.user_agent = user_agent
        self._http_session: aiohttp.ClientSession | None = None

    @property
    def key_id(self) -> str:
        return f"{self.public_base_url}/{self.identity.user_name}"

    async def _get_http_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._http_session is None or self._http_session.closed:
            self._http_session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent},
            )
        return self._http_session

    async def close(self) -> None:
        """Close HTTP session."""
        if self._http_session and not self._http_session.closed:
            await self._http_session.close()

    async def _get_json(self, url: str, signed: bool = True) -> Any:
        """GET a URL and decode its JSON body.

        Args:
            url: URL to fetch
            signed: Attach ActivityPub Accept and HTTP Signature headers

        Returns:
            Decoded JSON

        Raises:
            ActivityPubError: On non-2xx status or a non-object body
            aiohttp.ClientError: On transport failure
        """
        headers: dict[str, str] = {}
        if signed:
            headers["Accept"] = AP_CONTENT_TYPE
            headers.update(build_signature_headers(url, self.signer, self.key_id))

        http_session = await self._get_http_session()
        async with http_session.get(url, headers=headers) as response:
            if response.status >= 400:
                raise ActivityPubError(f"HTTP {response.status} from {url}")
            data = await response.json(content_type=None)

        if not isinstance(data, dict):
            raise ActivityPubError(f"Expected a JSON object from {url}")
        return data

    # === Resolution steps ===

    async def webfinger(self, address: str) -> str | None:
        """Resolve an address to its actor URL.

        Args:
            address: Address in ``@user@host`` form

        Returns:
            Actor URL, or None if the lookup failed
        """
        url = (
            f"https://{address_server(address)}/.well-known/webfinger"
            f"?resource=acct:{address_acct(address)}"
        )
        try:
            data = await self._get_json(url, signed=False)
            return find_webfinger_self_href(data)
        except Exception as e:
            logger.warning("WebFinger failed", address=address, url=url, error=str(e))
            return None

    async def get_outbox_url(self, href: str) -> str | None:
        """Fetch an actor document and return its outbox URL."""
        try:
            data = await self._get_json(href)
            return data["outbox"]
        except Exception as e:
            logger.warning("Get outbox URL failed", url=href, error=str(e))
            return None

    async def get_paginated_outbox_url(self, outbox_url: str) -> str | None:
        """Fetch an outbox collection and return its first page URL."""
        try:
            data = await self._get_json(outbox_url)
            first = data["first"]
            if isinstance(first, dict):
                first = first["id"]
            return first
        except Exception as e:
            logger.warning("Get paginated outbox URL failed", url=outbox_url, error=str(e))
            return None

    async def get_note(self, note_url: str) -> NoteObject | None:
        """Fetch a single Note object."""
        try:
            data = await self._get_json(note_url)
            return parse_note_object(data)
        except Exception as e:
            logger.warning("Get note failed", url=note_url, error=str(e))
            return None

    async def get_outbox(
        self,
        paginated_outbox_url: str,
        limit: int,
        scope: TaskScope,
    ) -> list[Note] | None:
        """Fetch an outbox page and normalize its latest posts.

        Replies are skipped, then at most ``limit`` items are kept. Reposts are
        fetched concurrently on ``scope``; the result keeps page order and
        omits reposts that could not be fetched.

        Args:
            paginated_outbox_url: URL of the outbox page
            limit: Maximum number of items to resolve
            scope: Task scope for the repost fetches

        Returns:
            Notes in page order, or None if the page could not be fetched
        """
        try:
            data = await self._get_json(paginated_outbox_url)
            items = parse_outbox_page(data)
        except Exception as e:
            logger.warning("Get outbox failed", url=paginated_outbox_url, error=str(e))
            return None

        items = [item for item in items if not is_reply(item)][:limit]

        pending: list[asyncio.Future[Note | None]] = []
        for item in items:
            if item.type == ActivityType.CREATE:
                pending.append(scope.completed(self._normalize(item.object, is_repost=False)))
            elif item.type == ActivityType.ANNOUNCE:
                pending.append(scope.spawn(self._resolve_repost(item), name=f"repost:{item.object}"))

        notes = []
        for future in pending:
            note = await future
            if note is not None:
                notes.append(note)

        logger.debug(
            "Resolved outbox",
            url=paginated_outbox_url,
            items=len(items),
            notes=len(notes),
        )
        return notes

    async def _resolve_repost(self, item: AnnounceItem) -> Note | None:
        note_object = await self.get_note(item.object)
        if note_object is None:
            return None
        return self._normalize(note_object, is_repost=True)

    def _normalize(self, note_object: NoteObject, is_repost: bool) -> Note | None:
        try:
            return note_from_object(note_object, is_repost=is_repost)
        except Exception as e:
            logger.warning("Cannot normalize note", note_id=note_object.id, error=str(e))
            return None

