# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Built-in tool catalog.

Each module pairs a :class:`~healthcare_mcp.registry.ToolDescriptor` with the
collaborator that executes it.  :func:`build_registry` wires them to a shared
HTTP client.
"""

from __future__ import annotations

import httpx

from .base import HTTPCollaborator
from .calculator import BMI_DESCRIPTOR, calculate_bmi
from .dicom import DICOM_DESCRIPTOR, DicomMetadataReader
from .fda import FDA_DESCRIPTOR, FDADrugLookup
from .health_topics import HEALTH_TOPICS_DESCRIPTOR, HealthTopicsSearch
from .medrxiv import MEDRXIV_DESCRIPTOR, MedRxivSearch
from .ncbi import BOOKSHELF_DESCRIPTOR, PUBMED_DESCRIPTOR, BookshelfSearch, PubMedSearch
from .terminology import ICD_DESCRIPTOR, ICDCodeLookup
from .trials import TRIALS_DESCRIPTOR, ClinicalTrialsSearch
from ..config import ServerSettings
from ..registry import ToolRegistry


def build_registry(client: httpx.AsyncClient, settings: ServerSettings) -> ToolRegistry:
    """Return an unfrozen registry holding the default catalog."""
    registry = ToolRegistry()
    registry.register(FDA_DESCRIPTOR, FDADrugLookup(client, api_key=settings.openfda_api_key))
    registry.register(PUBMED_DESCRIPTOR, PubMedSearch(client, api_key=settings.ncbi_api_key))
    registry.register(BMI_DESCRIPTOR, calculate_bmi)
    registry.register(TRIALS_DESCRIPTOR, ClinicalTrialsSearch(client))
    registry.register(HEALTH_TOPICS_DESCRIPTOR, HealthTopicsSearch(client))
    registry.register(ICD_DESCRIPTOR, ICDCodeLookup(client))
    registry.register(MEDRXIV_DESCRIPTOR, MedRxivSearch(client))
    registry.register(BOOKSHELF_DESCRIPTOR, BookshelfSearch(client, api_key=settings.ncbi_api_key))
    registry.register(DICOM_DESCRIPTOR, DicomMetadataReader(root=settings.dicom_root))
    return registry


__all__ = ["HTTPCollaborator", "build_registry"]
