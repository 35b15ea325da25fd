"""Registration of the reload endpoint and injection middleware on an app."""

from __future__ import annotations

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import Response

from templatesreload.channel.broadcast import BroadcastChannel
from templatesreload.injection import ReloadScriptMiddleware, ResponseInjector


def register_reload_route(app: Starlette, path: str, channel: BroadcastChannel) -> None:
    """Add the GET endpoint browsers use to open the reload channel."""

    async def reload_endpoint(request: Request) -> Response:
        return await channel.handle(request)

    app.add_route(path, reload_endpoint, methods=["GET"], include_in_schema=False)


def register_injection(app: Starlette, injector: ResponseInjector) -> None:
    """Wrap every HTTP response of ``app`` with the script injector."""
    app.add_middleware(ReloadScriptMiddleware, injector=injector)
