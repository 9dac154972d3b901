"""HTTP endpoints describing the gateway's own actor.

Remote servers resolve the ``keyId`` of our signatures through these:

- Actor endpoint (/{user_name}) with the public key
- WebFinger endpoint (/.well-known/webfinger)
"""

import structlog
from aiohttp import web

from .activitypub_types import (
    AP_LD_CONTENT_TYPE,
    JRD_CONTENT_TYPE,
    create_actor,
    create_webfinger_document,
)
from .identity import Identity
from .signature import HttpSignature

logger = structlog.get_logger()


def create_app(identity: Identity, server_name: str, base_url: str) -> web.Application:
    """Create the aiohttp application.

    Args:
        identity: Local identity
        server_name: Public host name (e.g., finger.example.com)
        base_url: Public base URL (e.g., https://finger.example.com)

    Returns:
        Configured application
    """
    app = web.Application()
    app["identity"] = identity
    app["signer"] = HttpSignature(identity)
    app["server_name"] = server_name
    app["base_url"] = base_url.rstrip("/")

    app.router.add_get("/.well-known/webfinger", handle_webfinger)
    app.router.add_get(f"/{identity.user_name}", handle_actor)
    return app


def _actor_url(app: web.Application) -> str:
    return f"{app['base_url']}/{app['identity'].user_name}"


async def handle_actor(request: web.Request) -> web.Response:
    """Serve the actor document."""
    app = request.app
    actor = create_actor(
        base_url=app["base_url"],
        user_name=app["identity"].user_name,
        public_key_pem=app["signer"].get_public_key_pem(),
    )
    logger.debug("Serving actor", remote=request.remote)
    return web.json_response(actor.to_dict(), content_type=AP_LD_CONTENT_TYPE)


async def handle_webfinger(request: web.Request) -> web.Response:
    """Handle WebFinger discovery requests."""
    app = request.app
    user_name = app["identity"].user_name
    actor_url = _actor_url(app)
    document = create_webfinger_document(app["server_name"], actor_url, user_name)

    resource = request.query.get("resource", "")
    if resource and resource not in (document["subject"], actor_url):
        return web.json_response(
            {"error": "Resource not found"},
            status=404,
        )

    return web.json_response(document, content_type=JRD_CONTENT_TYPE)


async def start_http_server(app: web.Application, host: str, port: int) -> web.AppRunner:
    """Start serving the application.

    Returns:
        Runner to clean up on shutdown
    """
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info("HTTP server started", host=host, port=port)
    return runner
