"""
Input validation for the calculators.

Every calculator parses the raw form values here before any formula runs.
A failure raises ValidationError naming the field and the broken constraint;
callers abandon the calculation and write nothing.
"""
import logging
import math
from typing import Any, Iterable, Optional

from .errors import ValidationError
from .models import (
    EXPONENT_CHOICES, DEFAULT_EXPONENT,
    AutoCounterInputs, AutoCounterRequest,
    CountMethod,
    HemocytometerInputs, HemocytometerRequest,
    Ingredient, IngredientKind,
    MixtureInputs, MixtureRequest,
    PresetInputs, PresetRequest,
    ReagentInputs, ReagentRequest,
)

logger = logging.getLogger(__name__)


def _is_blank(raw: Any) -> bool:
    return raw is None or (isinstance(raw, str) and not raw.strip())


def parse_number(field: str, raw: Any, required: bool = True) -> Optional[float]:
    if _is_blank(raw):
        if required:
            raise ValidationError(field, "is required")
        return None
    if isinstance(raw, bool):
        raise ValidationError(field, "must be a number")
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        try:
            value = float(str(raw).strip())
        except ValueError:
            raise ValidationError(field, "must be a number") from None
    if not math.isfinite(value):
        raise ValidationError(field, "must be a finite number")
    return value


def require_positive(field: str, value: float) -> float:
    if value is None or not value > 0:
        raise ValidationError(field, "must be greater than 0")
    return value


def require_non_negative(field: str, value: float) -> float:
    if value is None or not value >= 0:
        raise ValidationError(field, "must be 0 or greater")
    return value


def require_choice(field: str, value: float, choices: Iterable[int]) -> int:
    choices = tuple(choices)
    if value is None or value != int(value) or int(value) not in choices:
        allowed = ", ".join(str(c) for c in choices)
        raise ValidationError(field, f"must be one of {allowed}")
    return int(value)


def require_text(field: str, raw: Optional[str]) -> str:
    text = (raw or "").strip()
    if not text:
        raise ValidationError(field, "is required")
    return text


def _exponent(field: str, raw: Any) -> int:
    value = parse_number(field, raw, required=False)
    if value is None:
        return DEFAULT_EXPONENT
    return require_choice(field, value, EXPONENT_CHOICES)


def _optional_target(raw: Any) -> Optional[float]:
    # blank or 0 means "no target requested"
    value = parse_number("targetCells", raw, required=False)
    if value is None or value == 0:
        return None
    return require_positive("targetCells", value)


def _target_exponent(target_cells: Optional[float], raw: Any) -> int:
    # the exponent only matters when a target was requested
    if target_cells is None:
        return DEFAULT_EXPONENT
    return _exponent("targetExponent", raw)


def _ingredient_number(field: str, raw: Any) -> Optional[float]:
    # an unreadable row value contributes 0 instead of failing the table
    try:
        value = parse_number(field, raw, required=False)
    except ValidationError:
        logger.warning("%s: ignoring unreadable value %r", field, raw)
        return None
    if value is not None:
        require_non_negative(field, value)
    return value


# ---------------- cell count ----------------

def validate_hemocytometer(req: HemocytometerRequest) -> HemocytometerInputs:
    target_cells = _optional_target(req.target_cells)
    return HemocytometerInputs(
        preset_name=req.preset_name.strip(),
        cell_name=req.cell_name.strip(),
        type=req.type.strip(),
        counted_cells=require_positive("countedCells", parse_number("countedCells", req.counted_cells)),
        squares=require_positive("squares", parse_number("squares", req.squares)),
        dilution_factor=require_positive("dilutionFactor", parse_number("dilutionFactor", req.dilution_factor)),
        total_volume=require_positive("totalVolume", parse_number("totalVolume", req.total_volume)),
        target_cells=target_cells,
        target_exponent=_target_exponent(target_cells, req.target_exponent),
    )


def validate_auto_counter(req: AutoCounterRequest) -> AutoCounterInputs:
    target_cells = _optional_target(req.target_cells)
    return AutoCounterInputs(
        preset_name=req.preset_name.strip(),
        cell_name=req.cell_name.strip(),
        type=req.type.strip(),
        auto_count_value=require_positive("autoCountValue", parse_number("autoCountValue", req.auto_count_value)),
        auto_count_exponent=_exponent("autoCountExponent", req.auto_count_exponent),
        viability=require_non_negative("viability", parse_number("viability", req.viability)),
        total_volume=require_positive("totalVolume", parse_number("totalVolume", req.total_volume)),
        target_cells=target_cells,
        target_exponent=_target_exponent(target_cells, req.target_exponent),
    )


# ---------------- reagent ----------------

def validate_reagent(req: ReagentRequest) -> ReagentInputs:
    return ReagentInputs(
        reagent_name=req.reagent_name.strip(),
        molecular_weight=require_positive("molecularWeight", parse_number("molecularWeight", req.molecular_weight)),
        volume=require_positive("volume", parse_number("volume", req.volume)),
        molarity=require_positive("molarity", parse_number("molarity", req.molarity)),
    )


# ---------------- mixture ----------------

def validate_mixture(req: MixtureRequest, require_name: bool = False) -> MixtureInputs:
    name = require_text("mixtureName", req.mixture_name) if require_name else req.mixture_name.strip()

    ingredients = []
    for i, ing in enumerate(req.ingredients):
        prefix = f"ingredients[{i}]"
        composition = _ingredient_number(f"{prefix}.composition", ing.composition)
        stock = _ingredient_number(f"{prefix}.stock", ing.stock)

        ing_name = require_text(f"{prefix}.name", ing.name)
        kind = ing.kind or IngredientKind.from_name(ing_name)
        if kind is IngredientKind.DILUENT:
            raise ValidationError(f"{prefix}.kind", "diluent is added automatically")

        ingredients.append(Ingredient(
            name=ing_name,
            composition=composition,
            unit=ing.unit,
            stock=stock,
            kind=kind,
        ))

    return MixtureInputs(
        mixture_name=name,
        ingredients=ingredients,
        total_volume=require_positive("totalVolume", parse_number("totalVolume", req.total_volume)),
        x_mixture=require_positive("xMixture", parse_number("xMixture", req.x_mixture)),
    )


# ---------------- presets ----------------

def _preset_number(field: str, raw: Any) -> float:
    value = parse_number(field, raw, required=False)
    if value is None:
        return 0.0
    return require_non_negative(field, value)


def validate_preset(method: CountMethod, req: PresetRequest) -> PresetInputs:
    preset_name = require_text("presetName", req.preset_name)
    cell_name = require_text("cellName", req.cell_name)

    extra = {}
    if method is CountMethod.HEMOCYTOMETER:
        extra["dilution_factor"] = _preset_number("dilutionFactor", req.dilution_factor)
    else:
        extra["auto_count_exponent"] = _exponent("autoCountExponent", req.auto_count_exponent)

    return PresetInputs(
        preset_name=preset_name,
        cell_name=cell_name,
        type=req.type.strip(),
        calculation_method=method,
        total_volume=_preset_number("totalVolume", req.total_volume),
        target_cells=_preset_number("targetCells", req.target_cells),
        target_exponent=_exponent("targetExponent", req.target_exponent),
        **extra,
    )
