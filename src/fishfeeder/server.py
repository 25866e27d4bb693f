"""HTTP trigger surface.

Thin aiohttp.web handlers that validate the frontend's camelCase JSON,
call :class:`~fishfeeder.controller.FeederController` and return the
outcome with its mapped status code.

Usage::

    export FEEDER_DATABASE_URL="https://my-feeder-default-rtdb.firebaseio.com"
    export CRON_SECRET="..."
    fishfeeder-server --port 8080
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import hmac
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from http import HTTPStatus
from typing import Any

from aiohttp import web
from pydantic import ValidationError

from fishfeeder._clock import Clock, utcnow
from fishfeeder.config import FeederConfig
from fishfeeder.controller import FeederController
from fishfeeder.exceptions import DispatchError, FeederConfigError, FeederError, StoreError
from fishfeeder.models.requests import CancelRequest, FeedRequest, PriorityUpdateRequest, TimerUpdateRequest
from fishfeeder.notify.base import Notifier
from fishfeeder.state.store import StateStore

_logger = logging.getLogger(__name__)

CONFIG_KEY = web.AppKey("config", FeederConfig)
CONTROLLER_KEY = web.AppKey("controller", FeederController)

_Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def _error(status: HTTPStatus, code: str, **extra: Any) -> web.Response:
    return web.json_response({"success": False, "error": code, **extra}, status=int(status))


async def _json_body(request: web.Request) -> dict[str, Any]:
    if not request.can_read_body:
        return {}
    try:
        body = await request.json()
    except json.JSONDecodeError as exc:
        raise web.HTTPBadRequest(
            text=json.dumps({"success": False, "error": "invalid_json"}),
            content_type="application/json",
        ) from exc
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise web.HTTPBadRequest(
            text=json.dumps({"success": False, "error": "invalid_json"}),
            content_type="application/json",
        )
    return body


def _authorized(request: web.Request, secret: str | None) -> bool:
    """Accept ``Authorization: Bearer <secret>`` or ``?secret=<secret>``."""
    if not secret:
        return True
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and hmac.compare_digest(token.strip(), secret):
        return True
    return hmac.compare_digest(request.query.get("secret", ""), secret)


@web.middleware
async def error_middleware(request: web.Request, handler: _Handler) -> web.StreamResponse:
    try:
        return await handler(request)
    except ValidationError as exc:
        return _error(
            HTTPStatus.BAD_REQUEST,
            "invalid_request",
            details=exc.errors(include_url=False, include_context=False, include_input=False),
        )
    except FeederConfigError as exc:
        _logger.error("Rejecting %s %s: %s", request.method, request.path, exc)
        return _error(HTTPStatus.INTERNAL_SERVER_ERROR, "configuration_error")
    except DispatchError as exc:
        _logger.error("Dispatch failed for %s %s: %s", request.method, request.path, exc)
        return _error(HTTPStatus.INTERNAL_SERVER_ERROR, "dispatch_failed")
    except StoreError as exc:
        _logger.error("Store failure for %s %s: %s", request.method, request.path, exc)
        return _error(HTTPStatus.BAD_GATEWAY, "store_unavailable")


def _controller(request: web.Request) -> FeederController:
    return request.app[CONTROLLER_KEY]


def _require_cron(request: web.Request) -> None:
    if not _authorized(request, request.app[CONFIG_KEY].cron_secret):
        _logger.warning("Unauthorized trigger from %s", request.remote)
        raise web.HTTPUnauthorized(
            text=json.dumps({"success": False, "error": "unauthorized"}),
            content_type="application/json",
        )


# ------------------------------------------------------------------
# Handlers
# ------------------------------------------------------------------


async def cron_execute(request: web.Request) -> web.Response:
    _require_cron(request)
    outcome = await _controller(request).run_scheduler()
    return web.json_response(outcome.to_response(), status=outcome.http_status)


async def cron_check_device(request: web.Request) -> web.Response:
    _require_cron(request)
    summary = await _controller(request).check_device()
    return web.json_response(summary.to_response(), status=summary.http_status)


async def manual_feed(request: web.Request) -> web.Response:
    payload = FeedRequest.model_validate(await _json_body(request))
    result = await _controller(request).manual_feed(payload)
    return web.json_response(result.to_response(), status=result.http_status)


async def create_reservation(request: web.Request) -> web.Response:
    payload = FeedRequest.model_validate(await _json_body(request))
    result = await _controller(request).create_reservation(payload)
    return web.json_response(result.to_response(), status=result.http_status)


async def cancel_reservation(request: web.Request) -> web.Response:
    body = await _json_body(request)
    # Browsers cannot always send a DELETE body; accept query params too.
    payload = CancelRequest.model_validate({**request.query, **body})
    result = await _controller(request).cancel_reservation(payload)
    return web.json_response(result.to_response(), status=result.http_status)


async def update_timer(request: web.Request) -> web.Response:
    payload = TimerUpdateRequest.model_validate(await _json_body(request))
    result = await _controller(request).update_timer(payload)
    return web.json_response(result.to_response(), status=result.http_status)


async def update_priority(request: web.Request) -> web.Response:
    payload = PriorityUpdateRequest.model_validate(await _json_body(request))
    result = await _controller(request).update_priority(payload)
    return web.json_response(result.to_response(), status=result.http_status)


async def status(request: web.Request) -> web.Response:
    report = await _controller(request).get_status()
    return web.json_response(report.to_response(), status=report.http_status)


async def telegram_webhook(request: web.Request) -> web.Response:
    update = await _json_body(request)
    await _controller(request).handle_bot_update(update)
    # Always acknowledge, or the chat service keeps redelivering the update.
    return web.json_response({"ok": True})


# ------------------------------------------------------------------
# Application
# ------------------------------------------------------------------


async def _run_periodically(controller: FeederController, interval: float) -> None:
    while True:
        try:
            await controller.run_scheduler()
        except FeederError as exc:
            _logger.error("Periodic check failed: %s", exc)
        except Exception:
            _logger.exception("Unexpected error in periodic check")
        await asyncio.sleep(interval)


def create_app(
    config: FeederConfig,
    *,
    store: StateStore | None = None,
    notifier: Notifier | None = None,
    clock: Clock = utcnow,
) -> web.Application:
    """Build the web application.

    The controller (and its HTTP session) lives for the lifetime of the
    application; pending detached effects are drained on shutdown.
    """
    app = web.Application(middlewares=[error_middleware])
    app[CONFIG_KEY] = config

    async def controller_ctx(app: web.Application) -> AsyncIterator[None]:
        async with FeederController(config, store=store, notifier=notifier, clock=clock) as controller:
            app[CONTROLLER_KEY] = controller
            ticker: asyncio.Task[None] | None = None
            if config.scheduler_interval > 0:
                _logger.info("Running periodic checks every %.0f s", config.scheduler_interval)
                ticker = asyncio.create_task(
                    _run_periodically(controller, config.scheduler_interval),
                    name="periodic-check",
                )
            yield
            if ticker is not None:
                ticker.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await ticker

    app.cleanup_ctx.append(controller_ctx)
    app.add_routes(
        [
            web.post("/api/cron/execute", cron_execute),
            web.get("/api/cron/execute", cron_execute),
            web.post("/api/cron/check-device", cron_check_device),
            web.get("/api/cron/check-device", cron_check_device),
            web.post("/api/feed/manual", manual_feed),
            web.post("/api/reservations/create", create_reservation),
            web.delete("/api/reservations/cancel", cancel_reservation),
            web.put("/api/settings/timer", update_timer),
            web.put("/api/settings/priority", update_priority),
            web.get("/api/status", status),
            web.post("/api/telegram/webhook", telegram_webhook),
        ]
    )
    return app


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the fish feeder HTTP service.")
    parser.add_argument("--host", help="Bind address (default: FEEDER_HTTP_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Bind port (default: PORT or 8080)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    overrides: dict[str, Any] = {}
    if args.host:
        overrides["http_host"] = args.host
    if args.port:
        overrides["http_port"] = args.port
    config = FeederConfig.from_env(**overrides)
    web.run_app(create_app(config), host=config.http_host, port=config.http_port)


if __name__ == "__main__":
    main()
