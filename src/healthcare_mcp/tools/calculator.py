# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Local medical calculators."""

from __future__ import annotations

from typing import Any

from ..errors import InvalidArguments
from ..registry import FieldSpec, ToolDescriptor


BMI_DESCRIPTOR = ToolDescriptor(
    name="calculate_bmi",
    description="Calculate Body Mass Index (BMI)",
    fields={
        "height_meters": FieldSpec("number", required=True, description="Height in meters"),
        "weight_kg": FieldSpec("number", required=True, description="Weight in kilograms"),
    },
    cacheable=False,
)

# Upper bounds (exclusive) of the WHO adult categories.
_BMI_CATEGORIES = (
    (18.5, "Underweight"),
    (25.0, "Normal weight"),
    (30.0, "Overweight"),
)


def bmi_category(bmi: float) -> str:
    for bound, label in _BMI_CATEGORIES:
        if bmi < bound:
            return label
    return "Obese"


def calculate_bmi(height_meters: float, weight_kg: float) -> dict[str, Any]:
    if height_meters <= 0:
        raise InvalidArguments("height_meters must be greater than zero")
    if weight_kg <= 0:
        raise InvalidArguments("weight_kg must be greater than zero")

    bmi = round(weight_kg / (height_meters**2), 2)
    return {
        "bmi": bmi,
        "category": bmi_category(bmi),
        "height_meters": height_meters,
        "weight_kg": weight_kg,
    }


__all__ = ["BMI_DESCRIPTOR", "bmi_category", "calculate_bmi"]
