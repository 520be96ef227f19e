"""
HTTP executors built on httpx.

``http_request`` is the generic source node; ``http_post`` the generic
action. Both render ``{{...}}`` templates in the URL, headers and body,
parse JSON responses and fall back to ``{"text", "status"}`` otherwise.
Network failures and timeouts fail the node; HTTP error statuses do not,
the response is returned for downstream nodes to inspect.
"""

import json
import logging
from typing import Any
from urllib.parse import urlparse

import httpx

from flowcore.graph.node import RuntimeContext
from flowcore.graph.templating import render_config, render_template
from flowcore.nodes.base import fail, get_number, parse_json_option

logger = logging.getLogger(__name__)


def _parse_response(response: httpx.Response) -> Any:
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {"text": response.text, "status": response.status_code}


class HttpRequestNode:
    """
    Generic HTTP call.

    Config keys: ``url`` (required), ``method`` (default GET), ``headers``
    (object or JSON text), ``body`` (JSON text; defaults to the node input
    for non-GET requests), ``timeout`` in milliseconds (defaults to the
    runtime's per-call timeout), ``credential`` (name of a credential sent
    as a bearer token in ``Authorization``).

    Args:
        default_method: Method used when the config names none
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        default_method: str = "GET",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.default_method = default_method
        self.transport = transport

    async def execute(self, config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
        url = render_template(config.get("url") or "", input).strip()
        if not url:
            raise fail(ctx, "URL is required")
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise fail(ctx, f"invalid URL '{url}'")

        method = str(config.get("method") or self.default_method).upper()
        headers = self._headers(config, input, ctx)
        timeout = get_number(config, "timeout", ctx.default_timeout * 1000) / 1000

        request_kwargs: dict[str, Any] = {"headers": {"Content-Type": "application/json", **headers}}
        if method != "GET":
            request_kwargs["content"] = self._body(config, input, ctx)

        logger.debug(f"{ctx.node.name}: {method} {url}")
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
                response = await client.request(method, url, **request_kwargs)
        except httpx.TimeoutException as e:
            raise fail(ctx, f"request to {url} timed out after {timeout:g}s") from e
        except httpx.RequestError as e:
            raise fail(ctx, f"request to {url} failed: {e}") from e

        return _parse_response(response)

    def _headers(self, config: dict[str, Any], input: Any, ctx: RuntimeContext) -> dict[str, str]:
        raw = config.get("headers")
        if isinstance(raw, str):
            raw = render_template(raw, input)
            headers = parse_json_option(ctx, {"headers": raw}, "headers", {})
        else:
            headers = render_config(raw, input) if isinstance(raw, dict) else {}
        if not isinstance(headers, dict):
            raise fail(ctx, "headers must be a JSON object")
        headers = {str(k): str(v) for k, v in headers.items()}
        credential = config.get("credential")
        if credential:
            headers["Authorization"] = f"Bearer {ctx.credentials.require(credential)}"
        return headers

    def _body(self, config: dict[str, Any], input: Any, ctx: RuntimeContext) -> str:
        template = config.get("bodyTemplate") or config.get("body")
        if isinstance(template, dict | list):
            return json.dumps(render_config({"body": template}, input)["body"])
        if isinstance(template, str) and template.strip():
            return render_template(template, input)
        return json.dumps(input, default=str)


HTTP_EXECUTORS = {
    "http_request": HttpRequestNode(),
    "http_post": HttpRequestNode(default_method="POST"),
}
