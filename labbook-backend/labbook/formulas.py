"""
Calculator formulas.

Pure functions over already-parsed numbers. Preconditions are re-checked here
so that a bad value can never produce a number; a failed precondition raises
ValidationError and an unreachable target raises TargetExceedsAvailableError.

Units:
- cell concentrations are cells/mL, cell-count volumes are mL
- required volume is reported in µL
- reagent volume is mL, mass is g
- mixture volumes are µL, nucleic-acid amounts µg, stocks ng/µL
"""
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

from .errors import TargetExceedsAvailableError
from .models import DEFAULT_EXPONENT, EXPONENT_CHOICES, Ingredient, IngredientKind
from .validation import require_choice, require_non_negative, require_positive

HEMOCYTOMETER_FACTOR = 10_000
DILUENT_NAME = "D.W"
DILUENT_COMPOSITION = "Up to"


@dataclass(frozen=True)
class CellCountResult:
    cells_per_ml: float
    total_cells: float
    required_volume: Optional[float] = None
    total_target_cells: Optional[float] = None
    target_exponent: int = DEFAULT_EXPONENT


@dataclass(frozen=True)
class MixtureLine:
    name: str
    composition: Optional[Union[float, str]]
    unit: str
    stock: Optional[float]
    kind: IngredientKind
    base_volume: float
    final_volume: float


@dataclass(frozen=True)
class MixtureTable:
    lines: Tuple[MixtureLine, ...]
    total_volume: float
    x_mixture: float

    @property
    def diluent(self) -> MixtureLine:
        return self.lines[-1]

    @property
    def scaled_total_volume(self) -> float:
        return self.total_volume * self.x_mixture


# ---------------- cell counting ----------------

def hemocytometer_concentration(
    counted_cells: float,
    squares: float,
    dilution_factor: float,
    total_volume: float,
) -> float:
    require_positive("countedCells", counted_cells)
    require_positive("squares", squares)
    require_positive("dilutionFactor", dilution_factor)
    require_positive("totalVolume", total_volume)
    return (counted_cells / squares) * dilution_factor * HEMOCYTOMETER_FACTOR


def auto_counter_concentration(
    reading_value: float,
    reading_exponent: int,
    viability: float,
    total_volume: float,
) -> float:
    """Viability is checked but does not enter the concentration."""
    require_positive("autoCountValue", reading_value)
    exponent = require_choice("autoCountExponent", reading_exponent, EXPONENT_CHOICES)
    require_non_negative("viability", viability)
    require_positive("totalVolume", total_volume)
    return reading_value * 10 ** exponent


def total_cells(cells_per_ml: float, total_volume: float) -> float:
    return cells_per_ml * total_volume


def required_volume(
    cells_per_ml: float,
    total_volume: float,
    target_cells: float,
    target_exponent: int = DEFAULT_EXPONENT,
) -> Tuple[float, float]:
    """
    Volume of suspension holding target_cells * 10**target_exponent cells.

    Returns (required volume in µL, target total cells).
    """
    require_positive("cellsPerMl", cells_per_ml)
    require_positive("targetCells", target_cells)
    exponent = require_choice("targetExponent", target_exponent, EXPONENT_CHOICES)

    target_total = target_cells * 10 ** exponent
    required_ml = target_total / cells_per_ml
    if required_ml > total_volume:
        raise TargetExceedsAvailableError(required_ml, total_volume)
    return required_ml * 1000, target_total


def cell_count(
    cells_per_ml: float,
    total_volume: float,
    target_cells: Optional[float] = None,
    target_exponent: int = DEFAULT_EXPONENT,
) -> CellCountResult:
    total = total_cells(cells_per_ml, total_volume)
    if target_cells is None:
        return CellCountResult(cells_per_ml, total, target_exponent=target_exponent)

    volume_ul, target_total = required_volume(
        cells_per_ml, total_volume, target_cells, target_exponent
    )
    return CellCountResult(
        cells_per_ml=cells_per_ml,
        total_cells=total,
        required_volume=volume_ul,
        total_target_cells=target_total,
        target_exponent=target_exponent,
    )


# ---------------- reagent ----------------

def reagent_mass(molarity: float, molecular_weight: float, volume_ml: float) -> float:
    """Grams of solute for molarity (M) in volume_ml of solution."""
    require_positive("molarity", molarity)
    require_positive("molecularWeight", molecular_weight)
    require_positive("volume", volume_ml)
    return molarity * molecular_weight * (volume_ml / 1000)


# ---------------- mixture ----------------

def ingredient_base_volume(ingredient: Ingredient, total_volume: float) -> float:
    # blank composition/stock contributes 0
    composition = ingredient.composition
    if ingredient.kind is IngredientKind.NUCLEIC_ACID:
        if composition is None or not ingredient.stock:
            return 0.0
        return (composition * 1000) / ingredient.stock
    if ingredient.kind is IngredientKind.BUFFER:
        if not composition:
            return 0.0
        return total_volume / composition
    return composition or 0.0


def diluent_volume(total_volume: float, base_volumes: Sequence[float]) -> float:
    return max(0.0, total_volume - sum(base_volumes))


def mixture_table(
    ingredients: Sequence[Ingredient],
    total_volume: float,
    x_mixture: float,
) -> MixtureTable:
    require_positive("totalVolume", total_volume)
    require_positive("xMixture", x_mixture)

    lines = []
    for ing in ingredients:
        base = ingredient_base_volume(ing, total_volume)
        lines.append(MixtureLine(
            name=ing.name,
            composition=ing.composition,
            unit=ing.unit,
            stock=ing.stock,
            kind=ing.kind,
            base_volume=base,
            final_volume=base * x_mixture,
        ))

    dw = diluent_volume(total_volume, [line.base_volume for line in lines])
    lines.append(MixtureLine(
        name=DILUENT_NAME,
        composition=DILUENT_COMPOSITION,
        unit="μL",
        stock=None,
        kind=IngredientKind.DILUENT,
        base_volume=dw,
        final_volume=dw * x_mixture,
    ))
    return MixtureTable(lines=tuple(lines), total_volume=total_volume, x_mixture=x_mixture)
