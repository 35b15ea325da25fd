"""Browser bootstrap script injected into HTML documents.

The script is a small state machine:

    disconnected -> connecting -> connected -> reloading
          ^             |             |
          +---- error --+-------------+
    disconnected -> stopped   (after max consecutive failures)

A successful connection resets the failure counter. Only a ``reload``
message (an empty poll answer) triggers ``location.reload()``.
"""

from __future__ import annotations

import json
from string import Template

from templatesreload.config.schema import DEFAULT_ENDPOINT

# Attribute carried by the injected <script> tag; used to inject only once.
SCRIPT_MARKER = "data-templates-reload"

_CLIENT_TEMPLATE = Template(
    """<script $marker>
(function () {
  if (window.__templatesReload) { return; }
  var ENDPOINT = $endpoint;
  var TRANSPORT = $transport;
  var RECONNECT_DELAY = $reconnect_delay;
  var MAX_ATTEMPTS = $max_attempts;
  var PREFIX = '[templates-reload]';
  var state = { name: 'disconnected', failures: 0 };
  window.__templatesReload = state;

  function onOpen() {
    state.failures = 0;
    state.name = 'connected';
  }

  function onReload() {
    state.name = 'reloading';
    window.location.reload();
  }

  function onFailure() {
    if (state.name === 'reloading' || state.name === 'stopped') { return; }
    state.name = 'disconnected';
    state.failures += 1;
    if (state.failures >= MAX_ATTEMPTS) {
      state.name = 'stopped';
      console.warn(PREFIX + ' Connection lost ' + state.failures + ' times, auto-reload stopped.');
      return;
    }
    console.log(PREFIX + ' Connection lost, reconnecting...');
    setTimeout(connect, RECONNECT_DELAY);
  }

  function connectPush() {
    var source = new EventSource(ENDPOINT);
    source.onmessage = function (event) {
      if (event.data === 'connected') {
        onOpen();
      } else if (event.data === 'reload') {
        source.close();
        onReload();
      }
    };
    source.onerror = function () {
      source.close();
      onFailure();
    };
  }

  function connectPoll() {
    fetch(ENDPOINT, { cache: 'no-store' })
      .then(function (response) {
        if (!response.ok) { throw new Error('HTTP ' + response.status); }
        onOpen();
        return response.text();
      })
      .then(function (body) {
        // An empty body is the signal; anything else means the server went away
        if (body === '') {
          onReload();
        } else {
          onFailure();
        }
      }, onFailure);
  }

  function connect() {
    state.name = 'connecting';
    if (TRANSPORT === 'poll') {
      connectPoll();
    } else {
      connectPush();
    }
  }

  connect();
})();
</script>
"""
)


def render_client_script(
    endpoint: str = DEFAULT_ENDPOINT,
    transport: str = "push",
    reconnect_delay_ms: int = 1000,
    max_reconnect_attempts: int = 10,
) -> str:
    """Render the ``<script>`` block for one installation.

    Args:
        endpoint: URL path of the reload endpoint.
        transport: "push" (EventSource) or "poll" (held fetch).
        reconnect_delay_ms: Wait between reconnect attempts.
        max_reconnect_attempts: Consecutive failures before giving up.

    Returns:
        The complete script element, newline terminated.
    """
    return _CLIENT_TEMPLATE.substitute(
        marker=SCRIPT_MARKER,
        endpoint=json.dumps(endpoint),
        transport=json.dumps(transport),
        reconnect_delay=int(reconnect_delay_ms),
        max_attempts=int(max_reconnect_attempts),
    )
