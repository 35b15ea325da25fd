"""Tests for the browser bootstrap script.

The structural tests run everywhere. The behavioural tests execute the
script in Node's ``vm`` module with fake EventSource, fetch and timers, and
are skipped when ``node`` is not installed.
"""

from __future__ import annotations

import json
import re
import shutil
import subprocess
from typing import Any

import pytest

from fastapi import FastAPI

from templatesreload.channel.broadcast import BroadcastChannel
from templatesreload.channel.registry import ClientRegistry
from templatesreload.channel.transports import create_transport
from templatesreload.client import SCRIPT_MARKER, render_client_script
from templatesreload.routes import register_reload_route
from tests.utils import StreamingCall, settle

NODE = shutil.which("node")

# Drives the script through a list of actions and prints the final state.
# Actions: a message payload for the newest EventSource, "error", "tick"
# (run pending timers), "run" (execute the script again).
HARNESS = r"""
const vm = require('vm');
const fs = require('fs');
const source = fs.readFileSync(0, 'utf8');
// With -e the script name is absent, so read the trailing arguments
const args = process.argv.slice(-2);
const actions = JSON.parse(args[0]);
const pollBody = JSON.parse(args[1]);
const log = [];
const sources = [];
const fetches = [];
const delays = [];
let timers = [];

function EventSource(url) { this.url = url; this.closed = false; sources.push(this); }
EventSource.prototype.close = function () { this.closed = true; };

const context = {
  window: { location: { reload: function () { log.push('reload'); } } },
  EventSource: EventSource,
  setTimeout: function (fn, ms) { delays.push(ms); timers.push(fn); },
  console: { log: function () {}, warn: function () { log.push('warn'); } },
  fetch: function (url) {
    fetches.push(url);
    if (pollBody === null) { return Promise.reject(new Error('offline')); }
    return Promise.resolve({ ok: true, status: 200, text: function () { return Promise.resolve(pollBody); } });
  },
};
vm.createContext(context);
vm.runInContext(source, context);

for (const action of actions) {
  const current = sources[sources.length - 1];
  if (action === 'tick') {
    const pending = timers; timers = []; pending.forEach(function (fn) { fn(); });
  } else if (action === 'error') {
    current.onerror();
  } else if (action === 'run') {
    vm.runInContext(source, context);
  } else {
    current.onmessage({ data: action });
  }
}

setImmediate(function () {
  const state = context.window.__templatesReload;
  process.stdout.write(JSON.stringify({
    name: state.name,
    failures: state.failures,
    sources: sources.map(function (s) { return { url: s.url, closed: s.closed }; }),
    fetches: fetches,
    delays: delays,
    log: log,
  }));
});
"""


def script_body(rendered: str) -> str:
    match = re.search(r"<script[^>]*>(.*)</script>", rendered, re.DOTALL)
    assert match is not None
    return match.group(1)


def run_script(actions: list[str], poll_body: str | None = "", **options: Any) -> dict[str, Any]:
    """Run the rendered script; ``poll_body`` None makes every fetch fail."""
    rendered = render_client_script(**options)
    result = subprocess.run(
        [NODE, "-e", HARNESS, json.dumps(actions), json.dumps(poll_body)],
        input=script_body(rendered),
        capture_output=True,
        text=True,
        timeout=30,
        check=True,
    )
    return json.loads(result.stdout)


class TestRender:
    def test_script_element(self) -> None:
        rendered = render_client_script()
        assert rendered.startswith(f"<script {SCRIPT_MARKER}>")
        assert rendered.endswith("</script>\n")

    def test_values_substituted(self) -> None:
        rendered = render_client_script(
            endpoint="/__reload", transport="poll", reconnect_delay_ms=250, max_reconnect_attempts=4
        )
        assert 'var ENDPOINT = "/__reload";' in rendered
        assert 'var TRANSPORT = "poll";' in rendered
        assert "var RECONNECT_DELAY = 250;" in rendered
        assert "var MAX_ATTEMPTS = 4;" in rendered

    def test_defaults(self) -> None:
        rendered = render_client_script()
        assert 'var ENDPOINT = "/templates-reload";' in rendered
        assert "var RECONNECT_DELAY = 1000;" in rendered
        assert "var MAX_ATTEMPTS = 10;" in rendered

    def test_endpoint_is_escaped(self) -> None:
        rendered = render_client_script(endpoint='/a"b')
        assert 'var ENDPOINT = "/a\\"b";' in rendered

    def test_no_unsubstituted_placeholders(self) -> None:
        assert "$" not in render_client_script()


@pytest.mark.skipif(NODE is None, reason="node is not installed")
class TestPushBehaviour:
    """EventSource client state machine."""

    def test_connects_on_load(self) -> None:
        result = run_script([])
        assert result["name"] == "connecting"
        assert result["sources"] == [{"url": "/templates-reload", "closed": False}]

    def test_connected_message(self) -> None:
        result = run_script(["connected"])
        assert result["name"] == "connected"
        assert result["log"] == []

    def test_reload_message(self) -> None:
        result = run_script(["connected", "reload"])
        assert result["name"] == "reloading"
        assert result["log"] == ["reload"]
        assert result["sources"][0]["closed"] is True

    def test_unknown_message_ignored(self) -> None:
        result = run_script(["connected", "ping"])
        assert result["name"] == "connected"
        assert result["log"] == []

    def test_gives_up_after_max_failures(self) -> None:
        result = run_script(
            ["error", "tick", "error", "tick", "error", "tick"],
            max_reconnect_attempts=3,
            reconnect_delay_ms=500,
        )
        assert result["name"] == "stopped"
        assert result["failures"] == 3
        assert len(result["sources"]) == 3
        assert result["delays"] == [500, 500]
        assert result["log"] == ["warn"]

    def test_successful_connection_resets_failures(self) -> None:
        result = run_script(
            ["error", "tick", "connected", "error", "tick", "error", "tick"],
            max_reconnect_attempts=3,
        )
        assert result["name"] == "connecting"
        assert result["failures"] == 2
        assert len(result["sources"]) == 4

    def test_reconnected_client_still_reloads(self) -> None:
        result = run_script(["error", "tick", "connected", "reload"])
        assert result["log"] == ["reload"]

    def test_guard_against_double_install(self) -> None:
        result = run_script(["run"])
        assert len(result["sources"]) == 1


@pytest.mark.skipif(NODE is None, reason="node is not installed")
class TestPollBehaviour:
    """Held fetch client."""

    def test_completed_request_reloads(self) -> None:
        result = run_script([], transport="poll")
        assert result["fetches"] == ["/templates-reload"]
        assert result["name"] == "reloading"
        assert result["log"] == ["reload"]

    def test_failed_request_schedules_retry(self) -> None:
        result = run_script([], poll_body=None, transport="poll", reconnect_delay_ms=700)
        assert result["name"] == "disconnected"
        assert result["failures"] == 1
        assert result["delays"] == [700]
        assert result["log"] == []

    def test_closed_answer_is_a_failure(self) -> None:
        result = run_script([], poll_body="closed", transport="poll", reconnect_delay_ms=700)
        assert result["name"] == "disconnected"
        assert result["failures"] == 1
        assert result["delays"] == [700]
        assert result["log"] == []


async def held_poll_answer(shutdown: bool) -> str:
    """Body the server sends a held poll request on broadcast or on shutdown."""
    registry = ClientRegistry()
    channel = BroadcastChannel(registry, create_transport("poll", registry, check_interval=0.02))
    app = FastAPI()
    register_reload_route(app, "/templates-reload", channel)

    call = StreamingCall(app, "/templates-reload").start()
    await call.wait_started()
    await settle()
    if shutdown:
        channel.close()
    else:
        channel.broadcast()
    await call.wait_completed()
    return call.body


@pytest.mark.skipif(NODE is None, reason="node is not installed")
class TestPollAgainstServer:
    """Real poll answers fed to the browser script."""

    @pytest.mark.asyncio
    async def test_signal_reloads_page(self) -> None:
        body = await held_poll_answer(shutdown=False)
        result = run_script([], poll_body=body, transport="poll")
        assert result["name"] == "reloading"
        assert result["log"] == ["reload"]

    @pytest.mark.asyncio
    async def test_shutdown_does_not_reload_page(self) -> None:
        body = await held_poll_answer(shutdown=True)
        result = run_script([], poll_body=body, transport="poll")
        assert result["name"] == "disconnected"
        assert result["failures"] == 1
        assert result["log"] == []
