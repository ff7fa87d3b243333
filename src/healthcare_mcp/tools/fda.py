# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""openFDA drug label and adverse event lookups."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .base import HTTPCollaborator
from ..errors import InvalidArguments
from ..registry import FieldSpec, ToolDescriptor


OPENFDA_URL = "https://api.fda.gov/drug"

FDA_DESCRIPTOR = ToolDescriptor(
    name="fda_drug_lookup",
    description="Look up drug information from the FDA database",
    fields={
        "drug_name": FieldSpec("string", required=True, description="Brand or generic drug name"),
        "search_type": FieldSpec(
            "string",
            default="general",
            enum=("general", "label", "adverse_events"),
            description="general, label or adverse_events",
        ),
    },
)

_LABEL_SECTIONS = (
    "indications_and_usage",
    "dosage_and_administration",
    "contraindications",
    "warnings",
    "boxed_warning",
    "adverse_reactions",
    "drug_interactions",
)


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


class FDADrugLookup(HTTPCollaborator):
    source = "openFDA"

    async def execute(self, arguments: Mapping[str, Any]) -> Any:
        drug_name = arguments["drug_name"].strip()
        if not drug_name:
            raise InvalidArguments("drug_name must not be empty")
        search_type = arguments.get("search_type", "general")

        if search_type == "adverse_events":
            endpoint = "event.json"
            search = f'patient.drug.medicinalproduct:"{drug_name}"'
            limit = 10
        else:
            endpoint = "label.json"
            search = f'openfda.brand_name:"{drug_name}" OR openfda.generic_name:"{drug_name}"'
            limit = 3 if search_type == "general" else 1

        payload = await self._get_json(
            f"{OPENFDA_URL}/{endpoint}",
            {"search": search, "limit": limit, "api_key": self._api_key},
            allow_not_found=True,
        )
        # openFDA answers "no matches" with 404.
        records = (payload or {}).get("results", [])
        total = (payload or {}).get("meta", {}).get("results", {}).get("total", len(records))

        if search_type == "adverse_events":
            results = [self._adverse_event(record) for record in records]
        elif search_type == "label":
            results = [self._label(record) for record in records]
        else:
            results = [self._summary(record) for record in records]
        return {"drug_name": drug_name, "search_type": search_type, "total_results": total, "results": results}

    @staticmethod
    def _summary(record: Mapping[str, Any]) -> dict[str, Any]:
        openfda = record.get("openfda", {})
        return {
            "brand_name": _first(openfda.get("brand_name")),
            "generic_name": _first(openfda.get("generic_name")),
            "manufacturer": _first(openfda.get("manufacturer_name")),
            "route": openfda.get("route", []),
            "indications": _first(record.get("indications_and_usage")),
            "warnings": _first(record.get("warnings") or record.get("boxed_warning")),
        }

    @staticmethod
    def _label(record: Mapping[str, Any]) -> dict[str, Any]:
        openfda = record.get("openfda", {})
        label: dict[str, Any] = {
            "brand_name": _first(openfda.get("brand_name")),
            "generic_name": _first(openfda.get("generic_name")),
            "manufacturer": _first(openfda.get("manufacturer_name")),
            "effective_time": record.get("effective_time"),
        }
        for section in _LABEL_SECTIONS:
            if section in record:
                label[section] = _first(record[section])
        return label

    @staticmethod
    def _adverse_event(record: Mapping[str, Any]) -> dict[str, Any]:
        patient = record.get("patient", {})
        return {
            "report_id": record.get("safetyreportid"),
            "received": record.get("receivedate"),
            "serious": record.get("serious") == "1",
            "reactions": [r.get("reactionmeddrapt") for r in patient.get("reaction", []) if r.get("reactionmeddrapt")],
        }


__all__ = ["FDA_DESCRIPTOR", "FDADrugLookup"]
