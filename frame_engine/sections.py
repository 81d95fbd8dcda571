# frame_engine/sections.py
"""
SECTION PROPERTY CALCULATOR
===========================

Derives the geometric properties the stiffness and stress calculations need
from a Section descriptor:

    A        area
    Iy, Iz   second moments of area about local y and local z
    J        torsional constant
    Sy, Sz   elastic section moduli (I / distance to extreme fibre)

Axis convention (matches frame3d_local_stiffness):
    width  is measured along local y
    height is measured along local z
so bending about local y (moment My, displacement in local z) uses
Iy = w·h³/12 and Sy = Iy / (h/2) = w·h²/6.

Each section kind has its own derivation function, registered in
SECTION_CALCULATORS and dispatched by the kind tag.
"""

import math
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .errors import InvalidPropertyError, UnsupportedSectionKind
from .model import Section


@dataclass(frozen=True)
class SectionProperties:
    area: float
    iy: float
    iz: float
    j: float
    sy: float
    sz: float
    circular: bool = False  # biaxial bending peaks at one fibre, not a corner


def _positive(value, name: str, element_id=None) -> float:
    """Return value as float, or raise InvalidPropertyError."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidPropertyError(
            f"Section {name} must be a positive number, got {value!r}",
            element_id=element_id,
        )
    if not math.isfinite(number) or number <= 0.0:
        raise InvalidPropertyError(
            f"Section {name} must be a positive number, got {value!r}",
            element_id=element_id,
        )
    return number


def rectangular_torsion_constant(width: float, height: float) -> float:
    """
    Saint-Venant torsion constant of a solid rectangle (Roark approximation).

        J = a·b³·(1/3 - 0.21·(b/a)·(1 - b⁴/(12·a⁴))),   a >= b
    """
    a, b = max(width, height), min(width, height)
    return a * b**3 * (1.0 / 3.0 - 0.21 * (b / a) * (1.0 - b**4 / (12.0 * a**4)))


def rectangular_properties(section: Section, element_id=None) -> SectionProperties:
    w = _positive(section.width, 'width', element_id)
    h = _positive(section.height, 'height', element_id)

    iy = w * h**3 / 12.0
    iz = h * w**3 / 12.0
    return SectionProperties(
        area=w * h,
        iy=iy,
        iz=iz,
        j=rectangular_torsion_constant(w, h),
        sy=iy / (h / 2.0),
        sz=iz / (w / 2.0),
    )


def circular_properties(section: Section, element_id=None) -> SectionProperties:
    d = _positive(section.width, 'width (diameter)', element_id)
    r = d / 2.0

    i = math.pi * r**4 / 4.0
    return SectionProperties(
        area=math.pi * r**2,
        iy=i,
        iz=i,
        j=2.0 * i,  # polar moment
        sy=i / r,
        sz=i / r,
        circular=True,
    )


def explicit_properties(section: Section, element_id=None) -> SectionProperties:
    """
    Caller-supplied A, Iy, Iz, used verbatim.

    Extreme fibre distances come from height/width when given; otherwise the
    equivalent rectangle with the same A and I is used (c = sqrt(3·I/A)).
    J defaults to the polar moment Iy + Iz when not supplied.
    """
    area = _positive(section.area, 'area', element_id)
    iy = _positive(section.moment_of_inertia_y, 'momentOfInertiaY', element_id)
    iz = _positive(section.moment_of_inertia_z, 'momentOfInertiaZ', element_id)

    if section.height is not None:
        cz = _positive(section.height, 'height', element_id) / 2.0
    else:
        cz = math.sqrt(3.0 * iy / area)
    if section.width is not None:
        cy = _positive(section.width, 'width', element_id) / 2.0
    else:
        cy = math.sqrt(3.0 * iz / area)

    if section.torsional_constant is not None:
        j = _positive(section.torsional_constant, 'torsionalConstant', element_id)
    else:
        j = iy + iz

    return SectionProperties(area=area, iy=iy, iz=iz, j=j, sy=iy / cz, sz=iz / cy)


SECTION_CALCULATORS: Dict[str, Callable[..., SectionProperties]] = {
    'rectangular': rectangular_properties,
    'circular': circular_properties,
    'i-section': explicit_properties,
    'explicit': explicit_properties,
}


def section_properties(section: Section, element_id=None) -> SectionProperties:
    """
    Compute section properties, dispatching on ``section.kind``.

    Raises:
    -------
    UnsupportedSectionKind
        No calculator is registered for the kind tag
    InvalidPropertyError
        A required dimension is missing or non-positive

    Examples:
    ---------
    >>> props = section_properties(Section('rectangular', width=0.2, height=0.4))
    >>> round(props.area, 4), round(props.iy, 7), round(props.iz, 7)
    (0.08, 0.0010667, 0.0002667)
    """
    calculator: Optional[Callable[..., SectionProperties]] = None
    if isinstance(section.kind, str):
        calculator = SECTION_CALCULATORS.get(section.kind.lower())
    if calculator is None:
        raise UnsupportedSectionKind(section.kind, element_id=element_id)
    return calculator(section, element_id)
