"""Main entry point for the ActivityPub-to-Finger gateway.

Runs two servers side by side:
- Finger server answering with the latest posts of Fediverse accounts
- HTTP server publishing the gateway's actor and WebFinger record
"""

import argparse
import asyncio
import logging
import signal
import sys

import structlog
from pydantic import ValidationError

from . import __version__
from .activitypub_client import ActivityPubClient
from .config import GatewayConfig, load_config
from .finger import FingerServer
from .http_server import create_app, start_http_server
from .identity import Identity, IdentityError
from .scope import TaskScope

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


class GatewayServer:
    """Finger gateway with its companion HTTP server."""

    def __init__(self, config: GatewayConfig):
        """Initialize server.

        Args:
            config: Gateway configuration
        """
        self.config = config
        self.identity = Identity(
            private_key_path=config.identity.private_key_path,
            user_name=config.identity.user_name,
        )
        self.scope = TaskScope()
        self.activitypub_client: ActivityPubClient | None = None
        self.finger_server: FingerServer | None = None
        self.http_runner = None

    async def setup(self) -> None:
        """Load the identity and start both servers.

        Raises:
            IdentityError: If the key pair cannot be loaded
        """
        self.identity.load()
        logger.info("Identity ready", user_name=self.identity.user_name)

        self.activitypub_client = ActivityPubClient(
            identity=self.identity,
            public_base_url=self.config.http.base_url,
            timeout_seconds=self.config.client.timeout_seconds,
            user_agent=self.config.client.user_agent,
        )

        app = create_app(
            identity=self.identity,
            server_name=self.config.http.server_name,
            base_url=self.config.http.base_url,
        )
        self.http_runner = await start_http_server(
            app,
            self.config.http.host,
            self.config.http.port,
        )

        self.finger_server = FingerServer(
            activitypub_client=self.activitypub_client,
            scope=self.scope,
            default_address=self.config.finger.default_address,
            default_address_alias=self.config.finger.default_address_alias,
            host=self.config.finger.host,
            port=self.config.finger.port,
            post_limit=self.config.finger.post_limit,
            wrap_width=self.config.finger.wrap_width,
        )
        await self.finger_server.start()

        logger.info(
            "Gateway setup complete",
            base_url=self.config.http.base_url,
            default_address=self.config.finger.default_address,
        )

    async def cleanup(self) -> None:
        """Clean up server resources."""
        if self.finger_server:
            await self.finger_server.close()
        await self.scope.close()
        if self.activitypub_client:
            await self.activitypub_client.close()
        if self.http_runner:
            await self.http_runner.cleanup()

    async def run(self) -> None:
        """Run the gateway until SIGINT or SIGTERM."""
        try:
            await self.setup()

            stop_event = asyncio.Event()

            def signal_handler():
                stop_event.set()

            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, signal_handler)

            await stop_event.wait()
            logger.info("Shutting down...")
        finally:
            await self.cleanup()


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="ActivityPub to Finger gateway - read Fediverse posts with finger"
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "--finger-port",
        type=int,
        help="Override Finger server port",
    )
    parser.add_argument(
        "--http-port",
        type=int,
        help="Override HTTP server port",
    )

    args = parser.parse_args()

    # Configure standard logging
    logging.basicConfig(
        level=logging.INFO,
        format="%(message)s",
    )

    try:
        if args.config:
            config = GatewayConfig.from_yaml(args.config)
        else:
            config = load_config()
    except (OSError, ValidationError) as e:
        logger.error("Failed to load configuration", error=str(e))
        sys.exit(1)

    if args.finger_port:
        config.finger.port = args.finger_port
    if args.http_port:
        config.http.port = args.http_port

    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.getLogger().setLevel(log_level)

    logger.info("Starting activitypub-finger", version=__version__)

    server = GatewayServer(config)

    try:
        asyncio.run(server.run())
    except IdentityError as e:
        logger.error("Cannot load identity", error=str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
