from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

# Raw form values: the browser sends numbers or numeric strings (possibly blank).
RawNumber = Optional[Union[float, str]]

EXPONENT_CHOICES = (4, 5, 6, 7)
DEFAULT_EXPONENT = 6


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenCamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore"
    )


def _blank_to_none(v):
    # the browser client stores untouched number inputs as ""
    if isinstance(v, str) and not v.strip():
        return None
    return v


StoredFloat = Annotated[Optional[float], BeforeValidator(_blank_to_none)]
StoredInt = Annotated[Optional[int], BeforeValidator(_blank_to_none)]


class CountMethod(str, Enum):
    HEMOCYTOMETER = "hemocytometer"
    AUTO_COUNTER = "autoCounter"


class LogMethod(str, Enum):
    HEMOCYTOMETER = "Hemocytometer"
    AUTO_COUNTER = "Automated Cell Counter"
    REAGENT = "Reagent"


class IngredientKind(str, Enum):
    NUCLEIC_ACID = "nucleic_acid"
    BUFFER = "buffer"
    VOLUME = "volume"
    DILUENT = "diluent"

    @classmethod
    def from_name(cls, name: str) -> "IngredientKind":
        lowered = (name or "").lower()
        if "dna" in lowered or "rna" in lowered:
            return cls.NUCLEIC_ACID
        if "buffer" in lowered:
            return cls.BUFFER
        return cls.VOLUME


# ---------------- requests ----------------

class HemocytometerRequest(CamelModel):
    preset_name: str = ""
    cell_name: str = ""
    type: str = ""
    counted_cells: RawNumber = None
    squares: RawNumber = None
    dilution_factor: RawNumber = None
    total_volume: RawNumber = None
    target_cells: RawNumber = None
    target_exponent: RawNumber = DEFAULT_EXPONENT
    memo: str = ""


class AutoCounterRequest(CamelModel):
    preset_name: str = ""
    cell_name: str = ""
    type: str = ""
    auto_count_value: RawNumber = None
    auto_count_exponent: RawNumber = DEFAULT_EXPONENT
    viability: RawNumber = None
    total_volume: RawNumber = None
    target_cells: RawNumber = None
    target_exponent: RawNumber = DEFAULT_EXPONENT
    memo: str = ""


class ReagentRequest(CamelModel):
    reagent_name: str = ""
    molecular_weight: RawNumber = None
    volume: RawNumber = None
    molarity: RawNumber = None
    memo: str = ""


class IngredientRequest(CamelModel):
    name: str = ""
    composition: RawNumber = None
    unit: str = "μL"
    stock: RawNumber = None
    kind: Optional[IngredientKind] = None


class MixtureRequest(CamelModel):
    mixture_name: str = ""
    ingredients: List[IngredientRequest] = Field(default_factory=list)
    total_volume: RawNumber = None
    x_mixture: RawNumber = 1


class PresetRequest(CamelModel):
    preset_name: str = ""
    cell_name: str = ""
    type: str = ""
    total_volume: RawNumber = None
    target_cells: RawNumber = None
    target_exponent: RawNumber = DEFAULT_EXPONENT
    dilution_factor: RawNumber = None
    auto_count_exponent: RawNumber = DEFAULT_EXPONENT


class MemoUpdateRequest(CamelModel):
    memo: str = ""


# ---------------- validated inputs ----------------

class HemocytometerInputs(FrozenCamelModel):
    preset_name: str = ""
    cell_name: str = ""
    type: str = ""
    counted_cells: float
    squares: float
    dilution_factor: float
    total_volume: float
    target_cells: Optional[float] = None
    target_exponent: int = DEFAULT_EXPONENT


class AutoCounterInputs(FrozenCamelModel):
    preset_name: str = ""
    cell_name: str = ""
    type: str = ""
    auto_count_value: float
    auto_count_exponent: int
    viability: float
    total_volume: float
    target_cells: Optional[float] = None
    target_exponent: int = DEFAULT_EXPONENT


class ReagentInputs(FrozenCamelModel):
    reagent_name: str = ""
    molecular_weight: float
    volume: float
    molarity: float


class Ingredient(FrozenCamelModel):
    name: str
    composition: Optional[float] = None
    unit: str = "μL"
    stock: Optional[float] = None
    kind: IngredientKind


class MixtureInputs(FrozenCamelModel):
    mixture_name: str = ""
    ingredients: List[Ingredient] = Field(default_factory=list)
    total_volume: float
    x_mixture: float


class PresetInputs(FrozenCamelModel):
    preset_name: str
    cell_name: str
    type: str = ""
    calculation_method: CountMethod
    total_volume: float = 0.0
    target_cells: float = 0.0
    target_exponent: int = DEFAULT_EXPONENT
    dilution_factor: Optional[float] = None
    auto_count_exponent: Optional[int] = None


# ---------------- stored documents ----------------

class Preset(PresetInputs):
    id: str


class MixtureLineRecord(FrozenCamelModel):
    name: str
    composition: Annotated[Optional[Union[float, str]], BeforeValidator(_blank_to_none)] = None
    unit: str = "μL"
    stock: StoredFloat = None
    kind: IngredientKind
    base_volume: float = 0.0
    final_volume: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def fill_kind(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("kind"):
            name = data.get("name", "")
            kind = IngredientKind.DILUENT if name == "D.W" else IngredientKind.from_name(name)
            data = {**data, "kind": kind}
        return data


class MixturePreset(FrozenCamelModel):
    id: str
    mixture_name: str
    ingredients: List[MixtureLineRecord] = Field(default_factory=list)
    total_volume: float
    x_mixture: float
    created_at: Optional[datetime] = None


class DailyLog(FrozenCamelModel):
    """One finished calculation as stored; numeric fields are never recomputed."""

    id: str
    method: LogMethod
    timestamp: Optional[datetime] = None
    memo: str = ""

    preset_name: Optional[str] = None
    cell_name: Optional[str] = None
    type: Optional[str] = None
    total_volume: StoredFloat = None
    cells_per_ml: StoredFloat = None
    total_cells: StoredFloat = None
    required_volume: StoredFloat = None
    total_target_cells: StoredFloat = None
    target_cells: StoredFloat = None
    target_exponent: StoredInt = None

    counted_cells: StoredFloat = None
    squares: StoredFloat = None
    dilution_factor: StoredFloat = None

    auto_count_value: StoredFloat = None
    auto_count_exponent: StoredInt = None
    viability: StoredFloat = None

    reagent_name: Optional[str] = None
    molecular_weight: StoredFloat = None
    volume: StoredFloat = None
    molarity: StoredFloat = None
    mass: StoredFloat = None


# ---------------- responses ----------------

class CellCountResponse(CamelModel):
    log_id: str
    method: LogMethod
    cells_per_ml: float
    total_cells: float
    required_volume: Optional[float] = None
    total_target_cells: Optional[float] = None
    target_exponent: int
    summary: str


class ReagentResponse(CamelModel):
    log_id: str
    reagent_name: str
    mass: float
    unit: str = "g"
    summary: str


class MixtureTableResponse(CamelModel):
    lines: List[MixtureLineRecord]
    total_volume: float
    x_mixture: float
    scaled_total_volume: float
    diluent_volume: float


class SavedResponse(CamelModel):
    ok: bool = True
    id: str
    message: str


class HistoryResponse(CamelModel):
    date: date
    logs: List[DailyLog]
    marked_dates: List[date]


class CalendarResponse(CamelModel):
    year: int
    month: int
    days: List[int]


class SummaryResponse(CamelModel):
    date: date
    logs: List[DailyLog]
    text: str


class TypesResponse(CamelModel):
    types: List[str]


class CatalogResponse(CamelModel):
    calculators: Dict[str, Dict[str, Any]]
    exponent_choices: List[int]
    buffer_folds: List[int]
    default_ingredients: List[Dict[str, Any]]
    default_total_volume: float
    default_exponent: int
