# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""DICOM header metadata extraction.

Only the header is parsed (pixel data is skipped) and the read runs in a
worker thread so large files do not stall the event loop.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import anyio.to_thread
import pydicom
from pydicom.dataset import Dataset
from pydicom.errors import InvalidDicomError

from ..errors import CollaboratorFailure, InvalidArguments
from ..registry import FieldSpec, ToolDescriptor
from ..utils import get_logger


DICOM_DESCRIPTOR = ToolDescriptor(
    name="dicom_extract_metadata",
    description="Extract metadata (patient name, ID, study/series descriptions) from a DICOM file",
    fields={
        "file_path": FieldSpec("string", required=True, description="Path to the DICOM file"),
    },
    cacheable=False,
)

# Result key -> DICOM keyword.
METADATA_KEYWORDS = {
    "patient_name": "PatientName",
    "patient_id": "PatientID",
    "study_description": "StudyDescription",
    "series_description": "SeriesDescription",
    "modality": "Modality",
    "study_date": "StudyDate",
}


class DicomMetadataReader:
    """Read a DICOM file header from local disk.

    Args:
        root: When set, only files under this directory may be read.
    """

    source = "DICOM reader"

    def __init__(self, *, root: Path | None = None) -> None:
        self._root = root.expanduser().resolve() if root is not None else None
        self._logger = get_logger("healthcare_mcp.tools.DicomMetadataReader")

    async def execute(self, arguments: Mapping[str, Any]) -> Any:
        raw_path = arguments["file_path"].strip()
        if not raw_path:
            raise InvalidArguments("file_path must not be empty")
        path = Path(raw_path).expanduser().resolve()
        if self._root is not None and not path.is_relative_to(self._root):
            raise InvalidArguments(f"file_path must be inside {self._root}")

        self._logger.debug("Reading DICOM header from %s", path)
        dataset = await anyio.to_thread.run_sync(read_header, path)
        metadata = {key: _text(dataset.get(keyword)) for key, keyword in METADATA_KEYWORDS.items()}
        return {"file_path": str(path), **metadata}


def read_header(path: Path) -> Dataset:
    try:
        return pydicom.dcmread(path, stop_before_pixels=True)
    except InvalidDicomError as exc:
        raise CollaboratorFailure(f"{path} is not a valid DICOM file") from exc
    except OSError as exc:
        raise CollaboratorFailure(f"Could not read {path}: {exc.strerror or exc}") from exc


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


__all__ = ["DICOM_DESCRIPTOR", "METADATA_KEYWORDS", "DicomMetadataReader", "read_header"]
