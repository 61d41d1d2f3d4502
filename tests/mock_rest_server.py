"""Mock REST search server for testing the probe harness.

Runs an in-memory server using ``http.server`` from stdlib in a background
thread.  It routes by (path pattern, method) the way a search engine's REST
layer does, answers OPTIONS with an ``Allow`` header, and rejects methods
without a handler with 405, an ``Allow`` header, and an explanatory body.

Routes:

  ``/_tasks``             GET
  ``/{index}``            GET, PUT, DELETE, HEAD
  ``/{index}/_settings``  GET, PUT

Non-conformance flags (pass via ``non_conformances`` dict):

  ``missing_allow``           Omit the ``Allow`` header everywhere.
  ``allow_extra_method``      Add ``POST`` to every ``Allow`` header.
  ``allow_spaced_lowercase``  Send ``Allow`` as ``get, put`` (still valid).
  ``wrong_status``            Reject unsupported methods with 400 instead of 405.
  ``options_unsupported``     Treat OPTIONS as an unsupported method.
  ``post_settings_accepted``  Accept ``POST /{index}/_settings`` with 200.
  ``no_error_message``        Leave the explanation out of 405 bodies.
  ``reject_index_create``     Answer ``PUT /{index}`` with 403.
  ``reject_index_delete``     Answer ``DELETE /{index}`` with 403.

Usage::

    with MockRestServer(non_conformances={"missing_allow": True}) as server:
        client = RestClient(server.base_url)
        resp = client.perform_request("GET", "/_tasks")
"""

import json
import re
import threading
from http.server import HTTPServer, BaseHTTPRequestHandler
from typing import Any, Dict, List, Optional, Tuple

# (compiled pattern, route name, allowed methods in declaration order)
_ROUTES: List[Tuple[Any, str, Tuple[str, ...]]] = [
    (re.compile(r"^/_tasks$"), "tasks", ("GET",)),
    (re.compile(r"^/(?P<index>[^/_][^/]*)$"), "index", ("GET", "PUT", "DELETE", "HEAD")),
    (re.compile(r"^/(?P<index>[^/_][^/]*)/_settings$"), "settings", ("GET", "PUT")),
]


class MockRestHandler(BaseHTTPRequestHandler):
    """Dispatches every method through ``_dispatch`` against the route table.

    Server state (indices, non_conformances, request log) lives on the
    ``HTTPServer`` instance, shared across all handler instances.
    """

    def log_message(self, format, *args):
        """Suppress request logging during tests to keep output clean."""
        pass

    # -- Response helpers ----------------------------------------------------

    def _allow_value(self, methods: Tuple[str, ...]) -> str:
        methods = tuple(methods)
        if self.server.non_conformances.get("allow_extra_method"):
            methods = methods + ("POST",)
        if self.server.non_conformances.get("allow_spaced_lowercase"):
            return ", ".join(m.lower() for m in methods)
        return ",".join(methods)

    def _send(self, status: int, body: Optional[Any] = None,
              extra_headers: Optional[Dict[str, str]] = None):
        """Send a response; ``body`` is JSON-encoded unless None."""
        self.send_response(status)
        if extra_headers:
            for k, v in extra_headers.items():
                self.send_header(k, v)
        payload = b""
        if body is not None:
            payload = json.dumps(body).encode("utf-8")
            self.send_header("Content-Type", "application/json; charset=UTF-8")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        if payload and self.command != "HEAD":
            self.wfile.write(payload)

    def _send_error(self, status: int, error_type: str, reason: str):
        self._send(status, {"error": {"type": error_type, "reason": reason}, "status": status})

    def _send_method_not_allowed(self, path: str, allowed: Tuple[str, ...]):
        """405 with ``Allow`` and the ``Incorrect HTTP method`` explanation."""
        nc = self.server.non_conformances
        status = 400 if nc.get("wrong_status") else 405
        headers = {}
        if not nc.get("missing_allow"):
            headers["Allow"] = self._allow_value(allowed)
        if nc.get("no_error_message"):
            body = {"error": "Method Not Allowed", "status": status}
        else:
            body = {
                "error": (
                    f"Incorrect HTTP method for uri [{path}] and method "
                    f"[{self.command}], allowed: [{', '.join(allowed)}]"
                ),
                "status": status,
            }
        self._send(status, body, extra_headers=headers)

    def _drain_body(self):
        length = int(self.headers.get("Content-Length", 0) or 0)
        if length:
            self.rfile.read(length)

    # -- Routing -------------------------------------------------------------

    def _match(self, path: str):
        for pattern, name, methods in _ROUTES:
            m = pattern.match(path)
            if m:
                return name, methods, m.groupdict()
        return None, (), {}

    def _dispatch(self):
        self._drain_body()
        path = self.path.split("?")[0]
        self.server.request_log.append((self.command, path))
        nc = self.server.non_conformances

        name, allowed, params = self._match(path)
        if name is None:
            return self._send_error(
                400, "illegal_argument_exception",
                f"no handler found for uri [{path}] and method [{self.command}]",
            )

        if self.command == "OPTIONS" and not nc.get("options_unsupported"):
            headers = {} if nc.get("missing_allow") else {"Allow": self._allow_value(allowed)}
            return self._send(200, extra_headers=headers)

        if (
            name == "settings"
            and self.command == "POST"
            and nc.get("post_settings_accepted")
        ):
            return self._send(200, {"acknowledged": True})

        if self.command not in allowed:
            return self._send_method_not_allowed(path, allowed)

        handler = getattr(self, f"_handle_{name}")
        return handler(**params)

    # -- Route handlers ------------------------------------------------------

    def _handle_tasks(self):
        self._send(200, {"nodes": {}})

    def _handle_index(self, index: str):
        indices = self.server.indices
        nc = self.server.non_conformances

        if self.command == "PUT":
            if nc.get("reject_index_create"):
                return self._send_error(403, "security_exception", "action [indices:admin/create] is unauthorized")
            if index in indices:
                return self._send_error(400, "resource_already_exists_exception",
                                        f"index [{index}] already exists")
            indices[index] = {"index": {"number_of_shards": "1", "number_of_replicas": "1"}}
            return self._send(200, {"acknowledged": True, "shards_acknowledged": True, "index": index})

        if index not in indices:
            return self._send_error(404, "index_not_found_exception", f"no such index [{index}]")

        if self.command == "DELETE":
            if nc.get("reject_index_delete"):
                return self._send_error(403, "security_exception", "action [indices:admin/delete] is unauthorized")
            del indices[index]
            return self._send(200, {"acknowledged": True})

        # GET / HEAD
        return self._send(200, {index: {"settings": indices[index]}})

    def _handle_settings(self, index: str):
        if index not in self.server.indices:
            return self._send_error(404, "index_not_found_exception", f"no such index [{index}]")
        if self.command == "PUT":
            return self._send(200, {"acknowledged": True})
        return self._send(200, {index: {"settings": self.server.indices[index]}})

    do_GET = _dispatch
    do_HEAD = _dispatch
    do_PUT = _dispatch
    do_POST = _dispatch
    do_DELETE = _dispatch
    do_PATCH = _dispatch
    do_OPTIONS = _dispatch


class MockRestServer:
    """Configurable in-memory REST search server for testing.

    Runs in a background daemon thread.  Use as a context manager::

        with MockRestServer() as server:
            # server.base_url is available
            ...

    Args:
        port:              TCP port to listen on (0 = auto-assign).
        non_conformances:  Dict of non-conformance flags (see module docstring).
    """

    def __init__(self, port: int = 0, non_conformances: Optional[Dict[str, Any]] = None):
        self.non_conformances = dict(non_conformances or {})

        self.server = HTTPServer(("127.0.0.1", port), MockRestHandler)
        actual_port = self.server.server_address[1]
        self.server.base_url = f"http://127.0.0.1:{actual_port}"
        self.server.non_conformances = self.non_conformances
        self.server.indices = {}
        self.server.request_log = []

        self._thread = None

    @property
    def base_url(self) -> str:
        """The base URL of the running server (e.g. ``http://127.0.0.1:54321``)."""
        return self.server.base_url

    @property
    def indices(self) -> Dict[str, Any]:
        """Indices currently present on the server, keyed by name."""
        return self.server.indices

    @property
    def request_log(self) -> List[Tuple[str, str]]:
        """Every ``(method, path)`` the server has received, in order."""
        return self.server.request_log

    def start(self):
        """Start the server in a daemon thread."""
        self._thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self._thread.start()

    def stop(self):
        """Shut down the server and join the thread."""
        self.server.shutdown()
        self.server.server_close()
        if self._thread:
            self._thread.join(timeout=5)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *args):
        self.stop()
