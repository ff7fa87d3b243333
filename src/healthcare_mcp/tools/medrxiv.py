# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""medRxiv preprint search over the bioRxiv/medRxiv ``details`` API.

The API has no full-text search.  A DOI query is looked up directly; any
other query is matched term by term against the titles, abstracts and
categories of the most recent postings, paging through at most
:data:`MAX_PAGES` pages of the window.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .base import HTTPCollaborator, clamp
from ..errors import InvalidArguments
from ..registry import FieldSpec, ToolDescriptor


MEDRXIV_API_URL = "https://api.biorxiv.org/details/medrxiv"
RECENT_WINDOW = "30d"
MAX_PAGES = 5

MEDRXIV_DESCRIPTOR = ToolDescriptor(
    name="medrxiv_search",
    description="Search for pre-print medical research articles on medRxiv",
    fields={
        "query": FieldSpec("string", required=True, description="Search query for medRxiv"),
        "max_results": FieldSpec("integer", default=10, description="Maximum number of results (1-100)"),
    },
)


class MedRxivSearch(HTTPCollaborator):
    source = "medRxiv"

    async def execute(self, arguments: Mapping[str, Any]) -> Any:
        query = arguments["query"].strip()
        if not query:
            raise InvalidArguments("query must not be empty")
        max_results = clamp(arguments.get("max_results", 10), 1, 100)

        if query.startswith("10."):
            payload = await self._get_json(f"{MEDRXIV_API_URL}/{query}/na/json", {})
            matches = list((payload or {}).get("collection", []))[:max_results]
        else:
            matches = await self._scan_recent(query.lower().split(), max_results)

        articles = [self._article(item) for item in matches]
        return {"query": query, "total_results": len(articles), "articles": articles}

    async def _scan_recent(self, terms: list[str], max_results: int) -> list[dict[str, Any]]:
        matches: list[dict[str, Any]] = []
        cursor = 0
        for _ in range(MAX_PAGES):
            payload = await self._get_json(f"{MEDRXIV_API_URL}/{RECENT_WINDOW}/{cursor}/json", {}) or {}
            collection = payload.get("collection", [])
            for item in collection:
                haystack = " ".join(str(item.get(key, "")) for key in ("title", "abstract", "category")).lower()
                if all(term in haystack for term in terms):
                    matches.append(item)
                    if len(matches) >= max_results:
                        return matches

            cursor += len(collection)
            if not collection or cursor >= _total(payload):
                break
        return matches

    @staticmethod
    def _article(item: Mapping[str, Any]) -> dict[str, Any]:
        doi = item.get("doi", "")
        version = item.get("version") or "1"
        return {
            "doi": doi,
            "title": item.get("title", ""),
            "authors": [name.strip() for name in str(item.get("authors", "")).split(";") if name.strip()],
            "date": item.get("date", ""),
            "category": item.get("category", ""),
            "abstract": item.get("abstract", ""),
            "url": f"https://www.medrxiv.org/content/{doi}v{version}" if doi else None,
        }


def _total(payload: Mapping[str, Any]) -> int:
    messages = payload.get("messages") or [{}]
    try:
        return int(messages[0].get("total", 0))
    except (TypeError, ValueError):
        return 0


__all__ = ["MEDRXIV_DESCRIPTOR", "MedRxivSearch"]
