# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""ICD-10-CM lookups through the NLM Clinical Tables service."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .base import HTTPCollaborator, clamp
from ..errors import CollaboratorFailure, InvalidArguments
from ..registry import FieldSpec, ToolDescriptor


ICD10_URL = "https://clinicaltables.nlm.nih.gov/api/icd10cm/v3/search"

ICD_DESCRIPTOR = ToolDescriptor(
    name="icd_code_lookup",
    description="Look up ICD-10 codes by code or description for medical terminology",
    fields={
        "code": FieldSpec("string", description="ICD-10 code to look up"),
        "description": FieldSpec("string", description="Description to search for"),
        "max_results": FieldSpec("integer", default=10, description="Maximum number of results (1-50)"),
    },
)


class ICDCodeLookup(HTTPCollaborator):
    source = "NLM Clinical Tables"

    async def execute(self, arguments: Mapping[str, Any]) -> Any:
        code = (arguments.get("code") or "").strip()
        description = (arguments.get("description") or "").strip()
        if not code and not description:
            raise InvalidArguments("Either code or description must be provided")
        max_results = clamp(arguments.get("max_results", 10), 1, 50)

        terms = code or description
        search_field = "code" if code else "code,name"
        payload = await self._get_json(ICD10_URL, {"sf": search_field, "terms": terms, "maxList": max_results})

        # Response shape: [total, [codes], extra, [[code, name], ...]]
        if not isinstance(payload, list) or len(payload) < 4:
            raise CollaboratorFailure(f"{self.source} returned an unexpected payload")
        total, _, _, rows = payload[:4]
        codes = [{"code": row[0], "description": row[1]} for row in rows or [] if len(row) >= 2]
        return {
            "search_type": "code" if code else "description",
            "search_term": terms,
            "total_results": total,
            "codes": codes,
        }


__all__ = ["ICDCodeLookup", "ICD_DESCRIPTOR"]
