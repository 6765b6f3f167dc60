from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from enum import Enum
from math import pi, sin, radians, log, log10, sqrt, isfinite
from typing import ClassVar, Mapping, Optional, Union

logger = logging.getLogger(__name__)


# -----------------------------
# Errors
# -----------------------------
class ImpactCalculationError(Exception):
    """Base class for every failure raised by the calculator."""


class InvalidParameter(ImpactCalculationError, ValueError):
    """Entry parameters outside the domain the formulas are defined on."""


class NonFiniteResult(ImpactCalculationError, ArithmeticError):
    """A computed field came out as NaN or +/-inf."""


# -----------------------------
# Inputs
# -----------------------------
class Composition(str, Enum):
    IRON = "iron"
    STONY = "stony"
    CARBONACEOUS = "carbonaceous"
    COMET = "comet"

    @classmethod
    def parse(cls, value) -> "Composition":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        allowed = ", ".join(c.value for c in cls)
        raise InvalidParameter(f"Unknown composition {value!r}; expected one of: {allowed}.")


class ImpactType(str, Enum):
    AIRBURST = "airburst"
    SURFACE = "surface"


def _finite_number(name: str, value) -> float:
    if isinstance(value, bool):
        raise InvalidParameter(f"{name} must be a number, got {value!r}.")
    try:
        x = float(value)
    except (TypeError, ValueError):
        raise InvalidParameter(f"{name} must be a number, got {value!r}.") from None
    if not isfinite(x):
        raise InvalidParameter(f"{name} must be finite, got {value!r}.")
    return x


def _positive(name: str, value) -> float:
    x = _finite_number(name, value)
    if x <= 0.0:
        raise InvalidParameter(f"{name} must be > 0, got {value!r}.")
    return x


@dataclass(frozen=True)
class EntryParameters:
    """
    Body entering the atmosphere.

    diameter in meters, velocity in km/s, impact_angle in degrees from the
    horizontal. With impact_angle=None the canonical 45 deg is used
    ("fixed" mode), otherwise the given angle is ("caller" mode).
    name / nasa_id / is_potentially_hazardous are descriptive only.
    """
    diameter: float
    velocity: float
    composition: Composition
    impact_angle: Optional[float] = None
    name: Optional[str] = None
    nasa_id: Optional[str] = None
    is_potentially_hazardous: bool = False

    def __post_init__(self):
        object.__setattr__(self, "diameter", _positive("diameter", self.diameter))
        object.__setattr__(self, "velocity", _positive("velocity", self.velocity))
        object.__setattr__(self, "composition", Composition.parse(self.composition))
        if self.impact_angle is not None:
            angle = _finite_number("impact_angle", self.impact_angle)
            if not 0.0 <= angle <= 90.0:
                raise InvalidParameter(f"impact_angle must be within [0, 90] degrees, got {angle!r}.")
            object.__setattr__(self, "impact_angle", angle)

    @property
    def angle_mode(self) -> str:
        return "fixed" if self.impact_angle is None else "caller"

    @property
    def radius_m(self) -> float:
        return 0.5 * self.diameter

    @property
    def velocity_mps(self) -> float:
        return self.velocity * 1000.0


# -----------------------------
# Physical constants table
# -----------------------------
@dataclass(frozen=True)
class BlastRadii:
    """Overpressure radii in km."""
    twenty_psi: float
    five_psi: float
    one_psi: float

    def as_dict(self) -> dict:
        return {"twenty_psi": self.twenty_psi, "five_psi": self.five_psi, "one_psi": self.one_psi}


@dataclass(frozen=True)
class BlastScaling:
    """km of radius per kt^(1/3) for each overpressure threshold."""
    twenty_psi: float
    five_psi: float
    one_psi: float

    def radii_km(self, energy_kt: float) -> BlastRadii:
        s = energy_kt ** (1.0 / 3.0)
        return BlastRadii(twenty_psi=s * self.twenty_psi, five_psi=s * self.five_psi, one_psi=s * self.one_psi)


DENSITIES = {
    Composition.IRON: 7800.0,
    Composition.STONY: 3000.0,
    Composition.CARBONACEOUS: 2000.0,
    Composition.COMET: 1000.0,
}


@dataclass(frozen=True)
class PhysicsConstants:
    densities: Mapping[Composition, float] = field(default_factory=lambda: dict(DENSITIES))
    j_per_mt_tnt: float = 4.18e15
    default_angle_deg: float = 45.0

    # exponential atmosphere + entry
    rho0: float = 1.29                   # kg/m^3, sea level
    scale_height_m: float = 8000.0
    drag_coefficient: float = 2.0
    strength_intercept: float = 2.107    # log10(Y) = a + b*log10(rho_i)
    strength_slope: float = 0.0624

    # size rules override the altitude estimate
    airburst_below_m: float = 10.0
    surface_above_m: float = 200.0
    survival_reference_density: float = 3000.0

    # crater scaling (meters)
    gravity_mps2: float = 9.81
    k_transient: float = 1.161
    target_density: float = 2750.0
    crater_transition_m: float = 3200.0
    simple_collapse_factor: float = 1.25
    complex_collapse_factor: float = 1.17
    complex_collapse_exponent: float = 1.13

    # seismic, thermal, blast
    airburst_ground_fraction: float = 0.1
    seismic_slope: float = 0.67
    seismic_offset: float = -5.87
    thermal_flux_airburst: float = 6e5
    thermal_flux_surface: float = 4e5
    airburst_blast: BlastScaling = BlastScaling(twenty_psi=0.74, five_psi=1.54, one_psi=3.2)
    surface_blast: BlastScaling = BlastScaling(twenty_psi=0.62, five_psi=1.24, one_psi=2.8)

    def density_of(self, composition) -> float:
        return self.densities[Composition.parse(composition)]

    def validate(self) -> "PhysicsConstants":
        missing = [c.value for c in Composition if c not in self.densities]
        if missing:
            raise InvalidParameter(f"No density configured for: {', '.join(missing)}.")
        for comp, rho in self.densities.items():
            if not (isfinite(rho) and rho > 0.0):
                raise InvalidParameter(f"Density for {Composition.parse(comp).value} must be > 0, got {rho!r}.")
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, BlastScaling):
                if min(value.twenty_psi, value.five_psi, value.one_psi) < 0.0:
                    raise InvalidParameter(f"{f.name} coefficients must be >= 0.")
            elif isinstance(value, float) and not isfinite(value):
                raise InvalidParameter(f"{f.name} must be finite, got {value!r}.")
        positive = ("j_per_mt_tnt", "rho0", "scale_height_m", "drag_coefficient", "gravity_mps2",
                    "target_density", "crater_transition_m", "survival_reference_density",
                    "thermal_flux_airburst", "thermal_flux_surface")
        for name in positive:
            if getattr(self, name) <= 0.0:
                raise InvalidParameter(f"{name} must be > 0, got {getattr(self, name)!r}.")
        if not 0.0 <= self.default_angle_deg <= 90.0:
            raise InvalidParameter("default_angle_deg must be within [0, 90].")
        if not 0.0 < self.airburst_below_m <= self.surface_above_m:
            raise InvalidParameter("Size limits must satisfy 0 < airburst_below_m <= surface_above_m.")
        if not 0.0 <= self.airburst_ground_fraction <= 1.0:
            raise InvalidParameter("airburst_ground_fraction must be within [0, 1].")
        return self


DEFAULT_CONSTANTS = PhysicsConstants().validate()


# -----------------------------
# Results (tagged union)
# -----------------------------
@dataclass(frozen=True)
class _ImpactEffects:
    energy_tnt: float            # Mt
    seismic_magnitude: float
    thermal_radius: float        # km, third-degree burns
    blast_radius: BlastRadii     # km

    impact_type: ClassVar[ImpactType]

    def to_dict(self) -> dict:
        return {
            "impact_type": self.impact_type.value,
            "crater_diameter": self.crater_diameter,
            "energy_tnt": self.energy_tnt,
            "seismic_magnitude": self.seismic_magnitude,
            "thermal_radius": self.thermal_radius,
            "blast_radius": self.blast_radius.as_dict(),
        }

    def _numeric_fields(self) -> dict:
        out = {
            "energy_tnt": self.energy_tnt,
            "seismic_magnitude": self.seismic_magnitude,
            "thermal_radius": self.thermal_radius,
        }
        out.update({f"blast_radius.{k}": v for k, v in self.blast_radius.as_dict().items()})
        return out


@dataclass(frozen=True)
class Airburst(_ImpactEffects):
    impact_type: ClassVar[ImpactType] = ImpactType.AIRBURST

    @property
    def crater_diameter(self) -> float:
        return 0.0


@dataclass(frozen=True)
class Surface(_ImpactEffects):
    crater_diameter: float              # m, final
    transient_crater_diameter: float    # m

    impact_type: ClassVar[ImpactType] = ImpactType.SURFACE

    def _numeric_fields(self) -> dict:
        out = super()._numeric_fields()
        out["crater_diameter"] = self.crater_diameter
        out["transient_crater_diameter"] = self.transient_crater_diameter
        return out


ImpactResult = Union[Airburst, Surface]


def ensure_finite(result: ImpactResult) -> ImpactResult:
    for name, value in result._numeric_fields().items():
        if isinstance(value, complex) or not isfinite(value):
            raise NonFiniteResult(f"{result.impact_type.value} result field '{name}' is not finite ({value!r}).")
    return result


@dataclass(frozen=True)
class EntryAssessment:
    """Intermediate values of the airburst / surface decision."""
    impact_type: ImpactType
    rule: str
    strength_pa: float
    critical_air_density: float
    breakup_altitude_m: float
    penetration_depth_m: Optional[float]

    def as_dict(self) -> dict:
        return {
            "impact_type": self.impact_type.value,
            "rule": self.rule,
            "strength_pa": self.strength_pa,
            "critical_air_density": self.critical_air_density,
            "breakup_altitude_m": self.breakup_altitude_m,
            "penetration_depth_m": self.penetration_depth_m,
        }


# -----------------------------
# Calculator
# -----------------------------
class ImpactCalculator:
    """
    Energy, airburst/surface classification and the two effect formula sets.
    Stateless apart from its (immutable) inputs; safe to share between threads.
    """

    def __init__(self, params: EntryParameters, constants: PhysicsConstants = DEFAULT_CONSTANTS):
        if constants is not DEFAULT_CONSTANTS:
            constants.validate()
        self.p = params
        self.c = constants

    # ---------- Inputs ----------
    def density_kgpm3(self) -> float:
        return self.c.density_of(self.p.composition)

    def angle_deg(self) -> float:
        return self.c.default_angle_deg if self.p.impact_angle is None else self.p.impact_angle

    def sin_angle(self) -> float:
        return sin(radians(self.angle_deg()))

    # ---------- Energetics ----------
    def mass_kg(self) -> float:
        volume = (4.0 / 3.0) * pi * self.p.radius_m ** 3
        return volume * self.density_kgpm3()

    def kinetic_energy_J(self) -> float:
        return 0.5 * self.mass_kg() * self.p.velocity_mps ** 2

    def energy_mt_tnt(self) -> float:
        return self.kinetic_energy_J() / self.c.j_per_mt_tnt

    def energy_kt_tnt(self) -> float:
        return self.energy_mt_tnt() * 1000.0

    # ---------- Atmospheric entry ----------
    def strength_pa(self) -> float:
        """log10(Y) = 2.107 + 0.0624*log10(rho_i)"""
        return 10.0 ** (self.c.strength_intercept + self.c.strength_slope * log10(self.density_kgpm3()))

    def critical_air_density(self) -> float:
        """Air density at which ram pressure rho*v^2 equals the strength."""
        return self.strength_pa() / self.p.velocity_mps ** 2

    def breakup_altitude_m(self) -> float:
        """Exponential atmosphere rho(h) = rho0*exp(-h/H); 0 when breakup would be at/below sea level."""
        rho_c = self.critical_air_density()
        if rho_c >= self.c.rho0:
            return 0.0
        return -self.c.scale_height_m * log(rho_c / self.c.rho0)

    def penetration_depth_m(self) -> float:
        return (self.density_kgpm3() * self.p.diameter * self.sin_angle()) / (self.c.drag_coefficient * self.c.rho0)

    def assess_entry(self) -> EntryAssessment:
        strength = self.strength_pa()
        rho_c = self.critical_air_density()
        z = self.breakup_altitude_m()
        d = self.p.diameter
        depth = None

        if d > self.c.surface_above_m:
            kind, rule = ImpactType.SURFACE, "diameter_above_surface_limit"
        elif d < self.c.airburst_below_m:
            kind, rule = ImpactType.AIRBURST, "diameter_below_airburst_limit"
        else:
            depth = self.penetration_depth_m()
            if z == 0.0 or depth > 2.0 * z:
                kind, rule = ImpactType.SURFACE, "penetrates_below_breakup"
            elif z > 3.0 * depth:
                kind, rule = ImpactType.AIRBURST, "high_altitude_breakup"
            else:
                survival = self.density_kgpm3() / self.c.survival_reference_density
                if z > depth * (1.0 + survival):
                    kind, rule = ImpactType.AIRBURST, "marginal_dispersal"
                else:
                    kind, rule = ImpactType.SURFACE, "marginal_survival"

        logger.debug(f"[impact.entry] d={d}m v={self.p.velocity}km/s comp={self.p.composition.value} "
                     f"angle={self.angle_deg()} z_breakup={z:.0f}m depth={depth} -> {kind.value} ({rule})")
        return EntryAssessment(
            impact_type=kind,
            rule=rule,
            strength_pa=strength,
            critical_air_density=rho_c,
            breakup_altitude_m=z,
            penetration_depth_m=depth,
        )

    # ---------- Crater ----------
    def transient_diameter_m(self) -> float:
        c = self.c
        return (c.k_transient * (self.density_kgpm3() / c.target_density) ** (1.0 / 3.0)
                * self.p.diameter ** 0.78 * self.p.velocity_mps ** 0.44
                * c.gravity_mps2 ** -0.22 * self.sin_angle() ** (1.0 / 3.0))

    def final_diameter_m(self, transient_m: float | None = None) -> float:
        Dtc = self.transient_diameter_m() if transient_m is None else transient_m
        return final_crater_diameter_m(Dtc, self.c)

    # ---------- Seismic / thermal / blast ----------
    def seismic_magnitude(self, energy_J: float) -> float:
        return self.c.seismic_slope * log10(energy_J) + self.c.seismic_offset

    def thermal_radius_km(self, flux: float) -> float:
        return sqrt(self.kinetic_energy_J() / (4.0 * pi * flux)) / 1000.0

    # ---------- Branch outputs ----------
    def airburst(self) -> Airburst:
        """Only a fraction of the energy couples to the ground; the rest stays in the atmosphere."""
        E = self.kinetic_energy_J()
        ground = E * self.c.airburst_ground_fraction
        seismic = max(0.0, self.seismic_magnitude(ground)) if ground > 0.0 else 0.0
        return Airburst(
            energy_tnt=self.energy_mt_tnt(),
            seismic_magnitude=seismic,
            thermal_radius=self.thermal_radius_km(self.c.thermal_flux_airburst),
            blast_radius=self.c.airburst_blast.radii_km(self.energy_kt_tnt()),
        )

    def surface(self) -> Surface:
        # seismic deliberately not floored here (airburst is)
        Dtc = self.transient_diameter_m()
        return Surface(
            energy_tnt=self.energy_mt_tnt(),
            seismic_magnitude=self.seismic_magnitude(self.kinetic_energy_J()),
            thermal_radius=self.thermal_radius_km(self.c.thermal_flux_surface),
            blast_radius=self.c.surface_blast.radii_km(self.energy_kt_tnt()),
            crater_diameter=self.final_diameter_m(Dtc),
            transient_crater_diameter=Dtc,
        )

    def calculate(self, assessment: EntryAssessment | None = None) -> ImpactResult:
        try:
            entry = self.assess_entry() if assessment is None else assessment
            result = self.airburst() if entry.impact_type is ImpactType.AIRBURST else self.surface()
        except (OverflowError, ZeroDivisionError) as e:
            raise NonFiniteResult(f"Impact computation overflowed for {self.p}: {e}") from e
        except ValueError as e:
            if isinstance(e, InvalidParameter):
                raise
            raise NonFiniteResult(f"Impact computation left the formula domain for {self.p}: {e}") from e
        return ensure_finite(result)


def final_crater_diameter_m(transient_m: float, constants: PhysicsConstants = DEFAULT_CONSTANTS) -> float:
    """Simple crater below the transition (1.25*Dtc), gravity-collapsed complex crater above it."""
    c = constants
    if transient_m < c.crater_transition_m:
        return c.simple_collapse_factor * transient_m
    return (c.complex_collapse_factor * transient_m ** c.complex_collapse_exponent
            * c.crater_transition_m ** (1.0 - c.complex_collapse_exponent))


def calculate_impact(params: EntryParameters, constants: PhysicsConstants = DEFAULT_CONSTANTS) -> ImpactResult:
    return ImpactCalculator(params, constants).calculate()
