"""Finger protocol server (RFC 1288) backed by ActivityPub.

A client sends one line holding a Fediverse address and receives the latest
posts of that account as plain text. The connection is closed after every
response.
"""

import asyncio

import structlog

from .activitypub_client import ActivityPubClient
from .activitypub_types import Note, is_valid_address
from .scope import TaskScope
from .text import wrapped

logger = structlog.get_logger()

MAX_LINE_BYTES = 1024
SEPARATOR_WIDTH = 72
SEPARATOR = "-" * SEPARATOR_WIDTH

INVALID_ADDRESS_MESSAGE = "Invalid address\n"


def resolve_address(line: str, default_address: str, default_address_alias: str) -> str:
    """Apply the default address to an empty line or to the alias."""
    line = line.strip()
    if not line or line.lower() == default_address_alias.lower():
        return default_address
    return line


def user_not_found_message(address: str) -> str:
    return f"User {address} not found\n"


def posts_not_found_message(address: str) -> str:
    return f"Posts from {address} not found\n"


def render_note(note: Note, wrap_width: int) -> str:
    """Render a single post followed by a separator line."""
    parts = [f"{note.published}\n\n"]

    if note.attributed_to is not None:
        parts.append(f"Repost from {note.attributed_to}:\n")

    parts.append(f"{wrapped(note.content, wrap_width)}\n")

    if len(note.attachment) == 1:
        parts.append(f"\nAttachment:\n{note.attachment[0].url}\n")
    elif note.attachment:
        urls = "\n".join(f"- {attachment.url}" for attachment in note.attachment)
        parts.append(f"\nAttachments:\n{urls}\n")

    parts.append(f"\n{SEPARATOR}\n")
    return "".join(parts)


def render_posts(address: str, href: str, notes: list[Note], wrap_width: int) -> str:
    """Render the full response for a resolved account.

    Args:
        address: Queried address
        href: Actor URL (where more posts can be seen)
        notes: Posts to show, newest first
        wrap_width: Column width for post content

    Returns:
        Response text
    """
    if len(notes) > 1:
        intro = f"Here are the latest {len(notes)} posts from {address}:"
    else:
        intro = f"Here is the latest post from {address}:"

    parts = [f"{intro}\n", f"\n{SEPARATOR}\n"]
    parts.extend(render_note(note, wrap_width) for note in notes)
    parts.append(f"\nSee more posts at {href}.\n")
    parts.append("Have a nice day!\n")
    return "".join(parts)


async def read_request_line(reader: asyncio.StreamReader) -> str:
    """Read the request line, at most ``MAX_LINE_BYTES`` bytes."""
    try:
        raw = await reader.readuntil(b"\n")
    except asyncio.IncompleteReadError as e:
        raw = e.partial
    except asyncio.LimitOverrunError:
        raw = await reader.read(MAX_LINE_BYTES)
    return raw[:MAX_LINE_BYTES].decode("utf-8", errors="replace").rstrip("\r\n")


class FingerServer:
    """Finger server answering with the latest posts of a Fediverse account."""

    def __init__(
        self,
        activitypub_client: ActivityPubClient,
        scope: TaskScope,
        default_address: str,
        default_address_alias: str,
        host: str = "0.0.0.0",
        port: int = 7900,
        post_limit: int = 3,
        wrap_width: int = SEPARATOR_WIDTH,
    ):
        """Initialize the server.

        Args:
            activitypub_client: Client used to resolve addresses
            scope: Task scope owning connection handlers and repost fetches
            default_address: Address served for an empty request
            default_address_alias: Name that also selects the default address
            host: Bind address
            port: Bind port (0 picks a free port)
            post_limit: Number of posts per response
            wrap_width: Column width of post content
        """
        self.activitypub = activitypub_client
        self.scope = scope
        self.default_address = default_address
        self.default_address_alias = default_address_alias
        self.host = host
        self.port = port
        self.post_limit = post_limit
        self.wrap_width = wrap_width
        self._server: asyncio.Server | None = None

    @property
    def bound_port(self) -> int | None:
        """Port actually bound, once started."""
        if self._server is None or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> None:
        """Bind the listening socket and start accepting connections."""
        self._server = await asyncio.start_server(
            self._on_connection,
            self.host,
            self.port,
            limit=MAX_LINE_BYTES,
        )
        logger.info("Finger server started", host=self.host, port=self.bound_port)

    async def serve_forever(self) -> None:
        """Run until cancelled."""
        if self._server is None:
            await self.start()
        await self._server.serve_forever()

    async def close(self) -> None:
        """Stop accepting connections."""
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    def _on_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        peer = writer.get_extra_info("peername")
        logger.debug("Accepted connection", peer=str(peer))
        try:
            self.scope.spawn(self.handle_client(reader, writer), name=f"finger:{peer}")
        except RuntimeError:
            # Shutting down
            writer.close()

    async def handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Serve one request and close the connection."""
        try:
            line = await read_request_line(reader)
            response = await self.respond(line)
            writer.write(response.encode("utf-8"))
            await writer.drain()
        except (ConnectionError, asyncio.IncompleteReadError) as e:
            logger.info("Connection lost", error=str(e))
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError:
                pass

    async def respond(self, line: str) -> str:
        """Build the response for a request line.

        Args:
            line: Request line as received (without line terminator)

        Returns:
            Response text
        """
        address = resolve_address(line, self.default_address, self.default_address_alias)
        logger.info("Finger request", address=address)

        if not is_valid_address(address):
            return INVALID_ADDRESS_MESSAGE

        href = await self.activitypub.webfinger(address)
        logger.debug("Resolved actor", address=address, href=href)
        if href is None:
            return user_not_found_message(address)

        outbox_url = await self.activitypub.get_outbox_url(href)
        logger.debug("Resolved outbox", address=address, outbox_url=outbox_url)
        if outbox_url is None:
            return user_not_found_message(address)

        paginated_outbox_url = await self.activitypub.get_paginated_outbox_url(outbox_url)
        logger.debug("Resolved outbox page", address=address, page_url=paginated_outbox_url)
        if paginated_outbox_url is None:
            return user_not_found_message(address)

        notes = await self.activitypub.get_outbox(
            paginated_outbox_url,
            self.post_limit,
            self.scope,
        )
        if not notes:
            return posts_not_found_message(address)

        return render_posts(address, href, notes, self.wrap_width)
