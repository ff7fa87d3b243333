# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Shared plumbing for collaborators backed by public HTTP APIs."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

import httpx

from ..errors import CollaboratorFailure
from ..utils import get_logger


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


class HTTPCollaborator(ABC):
    """Base class for upstream adapters sharing one :class:`httpx.AsyncClient`.

    Transport errors, non-2xx statuses and undecodable bodies are reported as
    :class:`~healthcare_mcp.errors.CollaboratorFailure` so the dispatcher can
    wrap them in an error envelope.
    """

    source: str = "upstream"

    def __init__(self, client: httpx.AsyncClient, *, api_key: str | None = None) -> None:
        self._client = client
        self._api_key = api_key
        self._logger = get_logger(f"healthcare_mcp.tools.{type(self).__name__}")

    @abstractmethod
    async def execute(self, arguments: Mapping[str, Any]) -> Any: ...

    async def _get_json(self, url: str, params: Mapping[str, Any], *, allow_not_found: bool = False) -> Any:
        """GET *url* and decode the JSON body.

        Returns ``None`` for a 404 when *allow_not_found* is set; some APIs
        use it to mean "no matches".
        """
        query = {key: value for key, value in params.items() if value is not None}
        self._logger.debug("GET %s %s", url, query)
        try:
            response = await self._client.get(url, params=query)
        except httpx.HTTPError as exc:
            raise CollaboratorFailure(f"{self.source} request failed: {exc}") from exc

        if response.status_code == 404 and allow_not_found:
            return None
        if response.is_error:
            raise CollaboratorFailure(f"{self.source} returned HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise CollaboratorFailure(f"{self.source} returned a malformed response") from exc


__all__ = ["HTTPCollaborator", "clamp"]
