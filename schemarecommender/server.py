"""HTTP endpoint serving property recommendations."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Iterable
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from .instance import Instance
from .recommendation import RankedPropertyCandidate
from .strategy import Workflow

if TYPE_CHECKING:
    from .tree import SchemaTree

log = logging.getLogger(__name__)

RECOMMENDER_PATH = "/recommender"

Handler = Callable[[bytes], "tuple[int, bytes]"]


def limit_recommendations(
    recommendations: Iterable[RankedPropertyCandidate], hard_limit: int
) -> list[dict[str, Any]]:
    """Convert candidates to output entries, keeping properties only.

    At most ``hard_limit`` entries are returned; -1 means no limit.
    """
    output: list[dict[str, Any]] = []
    for candidate in recommendations:
        if hard_limit != -1 and len(output) >= hard_limit:
            break
        if candidate.property.is_prop():
            output.append(
                {"property": candidate.property.iri, "probability": candidate.probability}
            )
    return output


def _bracketed(values: Iterable[str]) -> str:
    return "[" + " ".join(values) + "]"


def format_for_logging(request: dict[str, list[str]]) -> str:
    """One-line rendering of a request, with line breaks removed."""
    text = (
        "{"
        + _bracketed(request.get("types") or ())
        + " "
        + _bracketed(request.get("properties") or ())
        + "}"
    )
    return text.replace("\n", "").replace("\r", "")


def _parse_request(body: bytes) -> dict[str, list[str]]:
    data = json.loads(body)
    request: dict[str, list[str]] = {"types": [], "properties": []}
    if data is None:
        return request
    if not isinstance(data, dict):
        raise ValueError("a request must be a JSON object")
    for key, value in data.items():
        name = key.lower()
        if name not in request or value is None:
            continue
        if not isinstance(value, list) or not all(isinstance(entry, str) for entry in value):
            raise ValueError(f"{key!r} must be a list of strings")
        request[name] = value
    return request


def make_recommender(
    model: SchemaTree | None, workflow: Workflow | None, hard_limit: int
) -> Handler:
    """Return a handler turning a JSON request body into (status, response body)."""
    if model is None:
        raise ValueError("Nil model specified")
    if workflow is None:
        raise ValueError("Nil workflow specified")
    if hard_limit < 1 and hard_limit != -1:
        raise ValueError("hardLimit must be positive, or -1")

    def handle(body: bytes) -> tuple[int, bytes]:
        try:
            request = _parse_request(body)
        except ValueError:
            log.info("Malformed Request.")
            return 400, b""
        logged = format_for_logging(request)
        log.info("request received %s", logged)

        instance = Instance.from_input(request["properties"], request["types"], model, True)
        started = time.perf_counter()
        recommendations = workflow.recommend(instance)
        log.info("request %s answered in %.6fs", logged, time.perf_counter() - started)

        response = {"recommendations": limit_recommendations(recommendations, hard_limit)}
        try:
            payload = json.dumps(response, allow_nan=False) + "\n"
        except ValueError:
            log.warning("Malformed Response. %s", response)
            return 200, b""
        return 200, payload.encode("utf-8")

    return handle


def make_server(
    model: SchemaTree | None,
    workflow: Workflow | None,
    hard_limit: int,
    host: str = "0.0.0.0",
    port: int = 8080,
) -> ThreadingHTTPServer:
    """An HTTP server answering recommendation requests on ``/recommender``."""
    handle = make_recommender(model, workflow, hard_limit)

    class _RequestHandler(BaseHTTPRequestHandler):
        def _dispatch(self) -> None:
            if urlsplit(self.path).path != RECOMMENDER_PATH:
                self.send_error(404)
                return
            try:
                length = int(self.headers.get("Content-Length") or 0)
            except ValueError:
                length = -1
            if length < 0:
                status, payload = 400, b""
            else:
                status, payload = handle(self.rfile.read(length) if length else b"")
            self.send_response(status)
            if payload:
                self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(payload)))
            self.end_headers()
            self.wfile.write(payload)

        do_GET = do_POST = do_PUT = do_PATCH = do_DELETE = _dispatch

        def log_message(self, format: str, *args: Any) -> None:
            log.debug("%s - %s", self.address_string(), format % args)

    return ThreadingHTTPServer((host, port), _RequestHandler)