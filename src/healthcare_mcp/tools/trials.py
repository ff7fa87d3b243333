# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""ClinicalTrials.gov (API v2) search."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .base import HTTPCollaborator, clamp
from ..errors import InvalidArguments
from ..registry import FieldSpec, ToolDescriptor


CLINICAL_TRIALS_URL = "https://clinicaltrials.gov/api/v2/studies"

TRIALS_DESCRIPTOR = ToolDescriptor(
    name="clinical_trials_search",
    description="Search for clinical trials",
    fields={
        "condition": FieldSpec("string", required=True, description="Condition or disease"),
        "status": FieldSpec(
            "string",
            default="recruiting",
            description="Overall status, e.g. recruiting, completed, active_not_recruiting, or all",
        ),
        "max_results": FieldSpec("integer", default=10, description="Maximum number of results (1-100)"),
    },
)


class ClinicalTrialsSearch(HTTPCollaborator):
    source = "ClinicalTrials.gov"

    async def execute(self, arguments: Mapping[str, Any]) -> Any:
        condition = arguments["condition"].strip()
        if not condition:
            raise InvalidArguments("condition must not be empty")
        status = arguments.get("status", "recruiting").strip().upper().replace(" ", "_")
        max_results = clamp(arguments.get("max_results", 10), 1, 100)

        params: dict[str, Any] = {"query.cond": condition, "pageSize": max_results, "format": "json", "countTotal": "true"}
        if status and status != "ALL":
            params["filter.overallStatus"] = status

        payload = await self._get_json(CLINICAL_TRIALS_URL, params) or {}
        studies = [self._study(study) for study in payload.get("studies", [])]
        return {
            "condition": condition,
            "status": status.lower(),
            "total_results": payload.get("totalCount", len(studies)),
            "trials": studies,
        }

    @staticmethod
    def _study(study: Mapping[str, Any]) -> dict[str, Any]:
        protocol = study.get("protocolSection", {})
        ident = protocol.get("identificationModule", {})
        status = protocol.get("statusModule", {})
        design = protocol.get("designModule", {})
        sponsor = protocol.get("sponsorCollaboratorsModule", {}).get("leadSponsor", {})
        locations = protocol.get("contactsLocationsModule", {}).get("locations", [])
        nct_id = ident.get("nctId", "")
        return {
            "nct_id": nct_id,
            "title": ident.get("briefTitle", ""),
            "status": status.get("overallStatus"),
            "phase": design.get("phases", []),
            "conditions": protocol.get("conditionsModule", {}).get("conditions", []),
            "sponsor": sponsor.get("name"),
            "start_date": status.get("startDateStruct", {}).get("date"),
            "locations": [
                ", ".join(part for part in (loc.get("facility"), loc.get("city"), loc.get("country")) if part)
                for loc in locations[:5]
            ],
            "url": f"https://clinicaltrials.gov/study/{nct_id}" if nct_id else None,
        }


__all__ = ["ClinicalTrialsSearch", "TRIALS_DESCRIPTOR"]
