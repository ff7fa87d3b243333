# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Evidence-based health topics from the MyHealthfinder API (health.gov)."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .base import HTTPCollaborator
from ..errors import InvalidArguments
from ..registry import FieldSpec, ToolDescriptor


MYHEALTHFINDER_URL = "https://health.gov/myhealthfinder/api/v3/topicsearch.json"

HEALTH_TOPICS_DESCRIPTOR = ToolDescriptor(
    name="health_topics_search",
    description="Get evidence-based health information from Health.gov on various topics",
    fields={
        "topic": FieldSpec("string", required=True, description="The health topic to search for"),
        "language": FieldSpec(
            "string", default="en", enum=("en", "es"), description="Language for results (en or es)"
        ),
    },
)


class HealthTopicsSearch(HTTPCollaborator):
    source = "Health.gov"

    async def execute(self, arguments: Mapping[str, Any]) -> Any:
        topic = arguments["topic"].strip()
        if not topic:
            raise InvalidArguments("topic must not be empty")
        language = arguments.get("language", "en")

        payload = await self._get_json(MYHEALTHFINDER_URL, {"keyword": topic, "lang": language}) or {}
        resources = payload.get("Result", {}).get("Resources", {}).get("Resource") or []
        if isinstance(resources, Mapping):
            resources = [resources]
        topics = [self._topic(resource) for resource in resources]
        return {"search_term": topic, "language": language, "total_results": len(topics), "topics": topics}

    @staticmethod
    def _topic(resource: Mapping[str, Any]) -> dict[str, Any]:
        sections = resource.get("Sections", {}).get("section") or []
        if isinstance(sections, Mapping):
            sections = [sections]
        return {
            "id": resource.get("Id"),
            "title": resource.get("Title", ""),
            "url": resource.get("AccessibleVersion"),
            "last_updated": resource.get("LastUpdate"),
            "sections": [section.get("Title") for section in sections if section.get("Title")],
        }


__all__ = ["HEALTH_TOPICS_DESCRIPTOR", "HealthTopicsSearch"]
