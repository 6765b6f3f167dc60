# Impact effects calculator
from .impact_model import (
    Airburst,
    BlastRadii,
    Composition,
    EntryParameters,
    ImpactCalculationError,
    ImpactCalculator,
    ImpactResult,
    ImpactType,
    InvalidParameter,
    NonFiniteResult,
    PhysicsConstants,
    Surface,
    calculate_impact,
)

__all__ = [
    "Airburst",
    "BlastRadii",
    "Composition",
    "EntryParameters",
    "ImpactCalculationError",
    "ImpactCalculator",
    "ImpactResult",
    "ImpactType",
    "InvalidParameter",
    "NonFiniteResult",
    "PhysicsConstants",
    "Surface",
    "calculate_impact",
]
