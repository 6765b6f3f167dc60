from __future__ import annotations

from dataclasses import dataclass

from .impact_model import Composition, EntryParameters


@dataclass(frozen=True)
class PresetScenario:
    name: str
    description: str
    parameters: EntryParameters

    def as_dict(self) -> dict:
        p = self.parameters
        return {
            "name": self.name,
            "description": self.description,
            "parameters": {
                "diameter": p.diameter,
                "velocity": p.velocity,
                "composition": p.composition.value,
                "impact_angle": p.impact_angle,
            },
        }


def _preset(name: str, description: str, diameter: float, velocity: float, composition: Composition) -> PresetScenario:
    return PresetScenario(name, description, EntryParameters(diameter, velocity, composition))


# Historic events and hypothetical sizes, all at the canonical 45 deg.
PRESET_SCENARIOS: tuple[PresetScenario, ...] = (
    _preset("Tiny Meteor (1m)", "1m meteorite - burns up in atmosphere",
            1, 17, Composition.STONY),
    _preset("Chelyabinsk Meteor (2013)", "20m stony meteor airburst over Russia",
            20, 19, Composition.STONY),
    _preset("Barringer Crater (50,000 years ago)", "50m iron meteorite in Arizona",
            50, 12.8, Composition.IRON),
    _preset("Tunguska Event (1908)", "60m comet airburst over Siberia",
            60, 15, Composition.COMET),
    _preset("Small City Killer", "Hypothetical 200m asteroid",
            200, 17, Composition.STONY),
    _preset("Regional Devastation", "Hypothetical 500m asteroid",
            500, 20, Composition.STONY),
    _preset("Global Catastrophe", "1km asteroid - mass extinction level",
            1000, 20, Composition.STONY),
)


def get_preset(index: int) -> PresetScenario:
    if not 0 <= index < len(PRESET_SCENARIOS):
        raise IndexError(f"No preset #{index}; {len(PRESET_SCENARIOS)} presets available.")
    return PRESET_SCENARIOS[index]


def find_preset(name: str) -> PresetScenario | None:
    key = name.strip().lower()
    for preset in PRESET_SCENARIOS:
        if preset.name.lower() == key:
            return preset
    return None
