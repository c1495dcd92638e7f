"""HTTP endpoints for Slack and the scheduled digest trigger.

Routes:
- POST /slack/events        Events API (url_verification, app_home_opened)
- POST /slack/interactions  Block actions from the home tab buttons
- POST /collect             Run one digest pass (scheduler hook)
- GET  /health              Liveness probe
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import time
from collections.abc import Awaitable, Callable
from typing import Any

from aiohttp import web

from times_news.activity import CollectStatus, DigestRunner
from times_news.config import Settings, get_settings
from times_news.constants import SLACK_SIGNATURE_MAX_AGE
from times_news.dispatcher import DispatchResult, EventDispatcher, parse_interaction
from times_news.errors import ConfigurationError, TransportDecodeError
from times_news.logging import get_logger, request_context
from times_news.slack.client import PlatformClient, SlackClient

log = get_logger("times_news.server")

COLLECT_SECRET_HEADER = "X-Collect-Secret"


@web.middleware
async def logging_context_middleware(
    request: web.Request, handler: Callable[[web.Request], Awaitable[web.StreamResponse]]
) -> web.StreamResponse:
    """Tag every log event of a request with its route."""
    with request_context(route=request.path):
        return await handler(request)


def build_slack_client(settings: Settings) -> SlackClient:
    """Create the process-wide Slack client from settings."""
    return SlackClient(
        settings.slack_bot_token.get_secret_value(),
        base_url=settings.slack_api_base_url,
        timeout=settings.slack_timeout,
        max_retries=settings.slack_max_retries,
    )


def compute_slack_signature(secret: str, timestamp: str, body: bytes) -> str:
    """Slack's v0 request signature for ``body`` sent at ``timestamp``."""
    base = b"v0:" + timestamp.encode("utf-8") + b":" + body
    digest = hmac.new(secret.encode("utf-8"), base, hashlib.sha256).hexdigest()
    return f"v0={digest}"


def verify_slack_signature(
    secret: str,
    timestamp: str | None,
    signature: str | None,
    body: bytes,
    *,
    now: float | None = None,
) -> bool:
    """Check a request's ``X-Slack-Signature`` header."""
    if not timestamp or not signature:
        return False
    try:
        sent_at = int(timestamp)
    except ValueError:
        return False
    current = time.time() if now is None else now
    if abs(current - sent_at) > SLACK_SIGNATURE_MAX_AGE:
        return False
    expected = compute_slack_signature(secret, timestamp, body)
    return hmac.compare_digest(expected, signature)


class TimesNewsServer:
    """aiohttp application serving Slack callbacks and the collect trigger.

    Settings, the Slack client and the dispatcher are built on first use and
    then reused for the life of the process. Until settings load, every
    request answers 500.
    """

    def __init__(
        self,
        *,
        settings_provider: Callable[[], Settings] = get_settings,
        client_factory: Callable[[Settings], PlatformClient] = build_slack_client,
    ) -> None:
        self._settings_provider = settings_provider
        self._client_factory = client_factory
        self._settings: Settings | None = None
        self._client: PlatformClient | None = None
        self._dispatcher: EventDispatcher | None = None

    def _setup(self) -> tuple[Settings, PlatformClient, EventDispatcher]:
        """Return the shared collaborators, creating them once.

        Raises:
            ConfigurationError: If settings cannot be loaded.
        """
        if self._settings is None or self._client is None or self._dispatcher is None:
            settings = self._settings_provider()
            client = self._client_factory(settings)
            self._dispatcher = EventDispatcher(client, settings)
            self._client = client
            self._settings = settings
            log.info("slack_client_initialized", environment=settings.environment)
        return self._settings, self._client, self._dispatcher

    def _check_signature(self, settings: Settings, request: web.Request, body: bytes) -> bool:
        if settings.slack_signing_secret is None:
            return True
        return verify_slack_signature(
            settings.slack_signing_secret.get_secret_value(),
            request.headers.get("X-Slack-Request-Timestamp"),
            request.headers.get("X-Slack-Signature"),
            body,
        )

    def _check_collect_auth(self, settings: Settings, request: web.Request) -> bool:
        if settings.collect_secret is None:
            return True
        provided = request.headers.get(COLLECT_SECRET_HEADER, "")
        return hmac.compare_digest(provided, settings.collect_secret.get_secret_value())

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application(middlewares=[logging_context_middleware])
        app.router.add_get("/health", self._handle_health)
        app.router.add_post("/slack/events", self._handle_events)
        app.router.add_post("/slack/interactions", self._handle_interactions)
        app.router.add_post("/collect", self._handle_collect)
        return app

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "ok"})

    async def _handle_events(self, request: web.Request) -> web.Response:
        try:
            settings, _, dispatcher = self._setup()
        except ConfigurationError as exc:
            log.error("setup_error", error=str(exc))
            return web.Response(status=500)

        body = await request.read()
        if not self._check_signature(settings, request, body):
            log.warning("slack_signature_invalid", path=request.path)
            return web.Response(status=401)

        try:
            envelope = json.loads(body)
            result = await dispatcher.handle_event(envelope)
        except (json.JSONDecodeError, UnicodeDecodeError, TransportDecodeError) as exc:
            log.warning("malformed_event", error=str(exc))
            return web.Response(status=400)
        return _to_response(result)

    async def _handle_interactions(self, request: web.Request) -> web.Response:
        try:
            settings, _, dispatcher = self._setup()
        except ConfigurationError as exc:
            log.error("setup_error", error=str(exc))
            return web.Response(status=500)

        body = await request.read()
        if not self._check_signature(settings, request, body):
            log.warning("slack_signature_invalid", path=request.path)
            return web.Response(status=401)

        form = await request.post()
        raw_payload = form.get("payload")
        try:
            interaction = parse_interaction(raw_payload if isinstance(raw_payload, str) else None)
        except TransportDecodeError as exc:
            log.warning("malformed_interaction", error=str(exc))
            return web.Response(status=400)
        result = await dispatcher.handle_interaction(interaction)
        return _to_response(result)

    async def _handle_collect(self, request: web.Request) -> web.Response:
        try:
            settings, client, _ = self._setup()
        except ConfigurationError as exc:
            log.error("setup_error", error=str(exc))
            return web.Response(status=500)

        if not self._check_collect_auth(settings, request):
            return web.json_response({"error": "Unauthorized"}, status=401)

        result = await DigestRunner(client, settings).run()
        status = 500 if result.status == CollectStatus.ABORTED else 200
        return web.json_response(result.to_dict(), status=status)


def _to_response(result: DispatchResult) -> web.Response:
    if result.content_type:
        return web.Response(
            status=result.status, text=result.body, content_type=result.content_type
        )
    kwargs: dict[str, Any] = {"status": result.status}
    if result.body:
        kwargs["text"] = result.body
    return web.Response(**kwargs)


async def run_server(host: str | None = None, port: int | None = None) -> None:
    """Run the HTTP server until cancelled."""
    settings = get_settings()
    host = host or settings.server_host
    port = port or settings.server_port
    server = TimesNewsServer()
    runner = web.AppRunner(server.create_app())
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    log.info("server_started", host=host, port=port)
    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()
        log.info("server_stopped")
