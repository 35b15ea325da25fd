"""Insert the bootstrap script into outgoing HTML documents.

A response counts as an HTML document when its ``Content-Type`` is
``text/html`` (or ``application/xhtml+xml``) and its body contains a closing
head tag. Everything else, JSON included, passes through untouched and is
never buffered.
"""

from __future__ import annotations

import re
from typing import overload

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from templatesreload.client import SCRIPT_MARKER

HTML_MEDIA_TYPES = frozenset({"text/html", "application/xhtml+xml"})

# Charsets where inserting ASCII bytes would corrupt the document
_NON_ASCII_CHARSETS = ("utf-16", "utf-32", "utf16", "utf32")

_HEAD_CLOSE_BYTES = re.compile(rb"</head\s*>", re.IGNORECASE)
_HEAD_CLOSE_TEXT = re.compile(r"</head\s*>", re.IGNORECASE)


def is_html_content_type(content_type: str | None) -> bool:
    if not content_type:
        return False
    media_type, _, params = content_type.partition(";")
    if media_type.strip().lower() not in HTML_MEDIA_TYPES:
        return False
    return not any(cs in params.lower() for cs in _NON_ASCII_CHARSETS)


class ResponseInjector:
    """Inserts a script immediately before the first closing head tag."""

    def __init__(self, script: str) -> None:
        self._script = script
        self._script_bytes = script.encode("utf-8")
        self._marker_bytes = SCRIPT_MARKER.encode("ascii")

    @property
    def script(self) -> str:
        return self._script

    @overload
    def inject(self, body: bytes) -> bytes: ...

    @overload
    def inject(self, body: str) -> str: ...

    def inject(self, body: bytes | str) -> bytes | str:
        """Return ``body`` with the script inserted, or ``body`` itself.

        Documents that already carry the script are returned unchanged.
        """
        if isinstance(body, bytes):
            if self._marker_bytes in body:
                return body
            match = _HEAD_CLOSE_BYTES.search(body)
            if match is None:
                return body
            return body[: match.start()] + self._script_bytes + body[match.start() :]

        if SCRIPT_MARKER in body:
            return body
        match_text = _HEAD_CLOSE_TEXT.search(body)
        if match_text is None:
            return body
        return body[: match_text.start()] + self._script + body[match_text.start() :]

    def should_inspect(self, headers: Headers) -> bool:
        """Whether a response with these headers may need the script."""
        if headers.get("content-encoding"):
            return False
        return is_html_content_type(headers.get("content-type"))


class ReloadScriptMiddleware:
    """ASGI middleware applying a ResponseInjector to every HTTP response.

    Side effect: wraps the ASGI ``send`` callable of every response of the
    application it is added to, for the lifetime of that application. HTML
    responses are buffered until complete so ``Content-Length`` can be
    corrected; other responses stream through unchanged.
    """

    def __init__(self, app: ASGIApp, injector: ResponseInjector) -> None:
        self.app = app
        self.injector = injector

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        extensions = scope.get("extensions") or {}
        if "http.response.pathsend" in extensions:
            # File responses must go out as body messages to be rewritten
            extensions = {k: v for k, v in extensions.items() if k != "http.response.pathsend"}
            scope = {**scope, "extensions": extensions}
        await self.app(scope, receive, _InjectingSend(send, self.injector))


class _InjectingSend:
    """Per-response ``send`` wrapper."""

    def __init__(self, send: Send, injector: ResponseInjector) -> None:
        self._send = send
        self._injector = injector
        self._start: Message | None = None
        self._chunks: list[bytes] = []

    async def __call__(self, message: Message) -> None:
        message_type = message["type"]

        if message_type == "http.response.start":
            if self._injector.should_inspect(Headers(raw=message["headers"])):
                self._start = message
                return
            await self._send(message)
            return

        if message_type == "http.response.body" and self._start is not None:
            self._chunks.append(message.get("body", b""))
            if message.get("more_body", False):
                return
            await self._flush()
            return

        await self._send(message)

    async def _flush(self) -> None:
        assert self._start is not None
        original = b"".join(self._chunks)
        body = self._injector.inject(original)

        start = self._start
        if body is not original:
            headers = MutableHeaders(raw=list(start["headers"]))
            if "content-length" in headers:
                headers["content-length"] = str(len(body))
            start = {**start, "headers": headers.raw}

        self._start = None
        self._chunks = []
        await self._send(start)
        await self._send({"type": "http.response.body", "body": body, "more_body": False})
