# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""NCBI E-utilities adapters: PubMed and the NCBI Bookshelf.

Both follow the same two-step flow: ``esearch`` resolves the query to a list
of ids, then ``esummary`` fetches the document summaries for those ids.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .base import HTTPCollaborator, clamp
from ..errors import InvalidArguments
from ..registry import FieldSpec, ToolDescriptor


EUTILS_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"

PUBMED_DESCRIPTOR = ToolDescriptor(
    name="pubmed_search",
    description="Search for medical literature in PubMed",
    fields={
        "query": FieldSpec("string", required=True, description="Search query for PubMed"),
        "max_results": FieldSpec("integer", default=5, description="Maximum number of results (1-100)"),
        "date_range": FieldSpec("string", description="Restrict to articles published in the last N years"),
        "open_access": FieldSpec("boolean", default=False, description="Only return free full-text articles"),
    },
)

BOOKSHELF_DESCRIPTOR = ToolDescriptor(
    name="ncbi_bookshelf_search",
    description="Search the NCBI Bookshelf for medical books and documents",
    fields={
        "query": FieldSpec("string", required=True, description="Search query for NCBI Bookshelf"),
        "max_results": FieldSpec("integer", default=10, description="Maximum number of results (1-100)"),
    },
)


class EUtilsCollaborator(HTTPCollaborator):
    """Common esearch/esummary plumbing."""

    source = "NCBI E-utilities"
    database: str = "pubmed"

    async def _search(self, term: str, max_results: int) -> tuple[int, list[str]]:
        payload = await self._get_json(
            f"{EUTILS_URL}/esearch.fcgi",
            {"db": self.database, "term": term, "retmax": max_results, "retmode": "json", "api_key": self._api_key},
        )
        result = (payload or {}).get("esearchresult", {})
        return int(result.get("count", 0) or 0), list(result.get("idlist", []))

    async def _summaries(self, ids: list[str]) -> list[dict[str, Any]]:
        if not ids:
            return []
        payload = await self._get_json(
            f"{EUTILS_URL}/esummary.fcgi",
            {"db": self.database, "id": ",".join(ids), "retmode": "json", "api_key": self._api_key},
        )
        result = (payload or {}).get("result", {})
        return [result[uid] for uid in result.get("uids", ids) if isinstance(result.get(uid), dict)]


class PubMedSearch(EUtilsCollaborator):
    source = "PubMed"
    database = "pubmed"

    async def execute(self, arguments: Mapping[str, Any]) -> Any:
        query = arguments["query"].strip()
        if not query:
            raise InvalidArguments("query must not be empty")
        max_results = clamp(arguments.get("max_results", 5), 1, 100)

        term = query
        date_range = arguments.get("date_range")
        if date_range:
            if not date_range.strip().isdigit():
                raise InvalidArguments("date_range must be a whole number of years")
            term += f' AND "last {int(date_range)} years"[dp]'
        if arguments.get("open_access"):
            term += ' AND "free full text"[sb]'

        total, ids = await self._search(term, max_results)
        articles = [self._article(doc) for doc in await self._summaries(ids)]
        return {"query": query, "total_results": total, "articles": articles}

    @staticmethod
    def _article(doc: Mapping[str, Any]) -> dict[str, Any]:
        pmid = str(doc.get("uid", ""))
        doi = next(
            (item.get("value") for item in doc.get("articleids", []) if item.get("idtype") == "doi"),
            None,
        )
        return {
            "id": pmid,
            "title": doc.get("title", ""),
            "authors": [author.get("name") for author in doc.get("authors", []) if author.get("name")],
            "journal": doc.get("fulljournalname") or doc.get("source", ""),
            "publication_date": doc.get("pubdate", ""),
            "doi": doi,
            "url": f"https://pubmed.ncbi.nlm.nih.gov/{pmid}/",
        }


class BookshelfSearch(EUtilsCollaborator):
    source = "NCBI Bookshelf"
    database = "books"

    async def execute(self, arguments: Mapping[str, Any]) -> Any:
        query = arguments["query"].strip()
        if not query:
            raise InvalidArguments("query must not be empty")
        max_results = clamp(arguments.get("max_results", 10), 1, 100)

        total, ids = await self._search(query, max_results)
        books = [self._book(doc) for doc in await self._summaries(ids)]
        return {"query": query, "total_results": total, "books": books}

    @staticmethod
    def _book(doc: Mapping[str, Any]) -> dict[str, Any]:
        accession = doc.get("accessionid") or ""
        url = f"https://www.ncbi.nlm.nih.gov/books/{accession}/" if accession else None
        return {
            "id": str(doc.get("uid", "")),
            "title": doc.get("title", ""),
            "book": doc.get("booktitle") or doc.get("bookname") or "",
            "publication_date": doc.get("pubdate", ""),
            "url": url,
        }


__all__ = [
    "BOOKSHELF_DESCRIPTOR",
    "PUBMED_DESCRIPTOR",
    "BookshelfSearch",
    "EUtilsCollaborator",
    "PubMedSearch",
]
