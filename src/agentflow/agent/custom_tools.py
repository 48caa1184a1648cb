"""User-defined tools backed by an HTTP endpoint."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Any, Literal

import httpx
from pydantic import BaseModel, Field

from agentflow.agent.registry import ToolContext, ToolRegistry, ToolSpec
from agentflow.errors import ToolExecutionError

logger = logging.getLogger(__name__)

_RESPONSE_PREVIEW = 500


class CustomToolDefinition(BaseModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str = ""
    endpoint: str = Field(pattern=r"^https?://")
    auth_type: Literal["none", "bearer", "apikey"] = "none"
    auth_value: str | None = None

    @property
    def tool_name(self) -> str:
        """Name exposed to the model; registry names allow `[a-zA-Z0-9_-]` only."""
        slug = re.sub(r"[^a-zA-Z0-9_-]+", "_", self.name.strip()).strip("_").lower()
        return f"custom_{slug or self.id}"[:64]

    def headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.auth_value:
            if self.auth_type == "bearer":
                headers["Authorization"] = f"Bearer {self.auth_value}"
            elif self.auth_type == "apikey":
                headers["x-api-key"] = self.auth_value
        return headers


class CustomToolInput(BaseModel):
    input: str = Field(min_length=1, description="Free-text request forwarded to the endpoint.")


def call_custom_tool(
    definition: CustomToolDefinition,
    tool_input: str,
    context: dict[str, Any],
    *,
    client: httpx.Client,
) -> str:
    """POST one invocation and return the response as text.

    Non-2xx statuses, bodies that are not JSON and transport failures all
    raise `ToolExecutionError` so the loop can hand them back to the model.
    """

    body = {
        "input": tool_input,
        "context": context,
        "toolId": definition.id,
        "toolName": definition.name,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    try:
        response = client.post(definition.endpoint, json=body, headers=definition.headers())
    except httpx.HTTPError as exc:
        logger.warning("Custom tool %s transport failure: %s", definition.name, exc)
        raise ToolExecutionError(f"Custom tool {definition.name} request failed: {exc}") from exc

    if response.is_error:
        raise ToolExecutionError(
            f"Custom tool {definition.name} returned HTTP {response.status_code}: "
            f"{response.text[:_RESPONSE_PREVIEW]}"
        )
    try:
        payload = response.json()
    except ValueError as exc:
        raise ToolExecutionError(
            f"Custom tool {definition.name} returned non-JSON response: "
            f"{response.text[:_RESPONSE_PREVIEW]}"
        ) from exc

    if isinstance(payload, dict):
        for key in ("result", "output"):
            if isinstance(payload.get(key), str):
                return payload[key]
    return json.dumps(payload)


def register_custom_tools(
    registry: ToolRegistry,
    definitions: Iterable[CustomToolDefinition],
    *,
    client: httpx.Client | None = None,
    timeout_seconds: float = 15.0,
) -> list[str]:
    """Register one tool per definition and return the registered names."""

    http = client or httpx.Client(timeout=timeout_seconds)
    names: list[str] = []
    for definition in definitions:
        registry.register(
            ToolSpec(
                name=definition.tool_name,
                description=definition.description or f"Custom tool {definition.name}",
                args_schema=CustomToolInput,
                handler=_build_handler(definition, http),
                tags=["custom"],
                needs_context=True,
            )
        )
        names.append(definition.tool_name)
    return names


def _build_handler(
    definition: CustomToolDefinition, client: httpx.Client
) -> Callable[[CustomToolInput, ToolContext], str]:
    def _handler(input_data: CustomToolInput, context: ToolContext) -> str:
        return call_custom_tool(
            definition,
            input_data.input,
            {"agent": context.agent_name, "depth": context.depth},
            client=client,
        )

    return _handler
