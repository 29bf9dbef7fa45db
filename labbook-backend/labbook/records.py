"""
Builds the documents written to the store from validated inputs and results.

Field names are the camelCase keys the browser client reads. The timestamp is
always the store's server-timestamp placeholder, never a client clock.
"""
import logging
import uuid
from typing import Any, Dict, Iterable, List, Union

from pydantic import ValidationError as PydanticValidationError

from .db import SERVER_TIMESTAMP, Document
from .formulas import CellCountResult, MixtureTable
from .models import (
    AutoCounterInputs, CountMethod, DailyLog, HemocytometerInputs,
    LogMethod, MixtureInputs, MixtureLineRecord, MixturePreset,
    Preset, PresetInputs, ReagentInputs,
)

logger = logging.getLogger(__name__)

UNKNOWN_REAGENT = "Unknown Reagent"

# Fixed namespace so preset ids are stable across deployments.
PRESET_NAMESPACE = uuid.UUID("6f1c2f43-5a0e-4d8e-9b8e-2c1f0b7d9a11")


def preset_id(preset_name: str, method: CountMethod) -> str:
    """Same (name, method) always gives the same id, so re-saving overwrites."""
    return str(uuid.uuid5(PRESET_NAMESPACE, f"{method.value}:{preset_name}"))


def _cell_count_base(
    inputs: Union[HemocytometerInputs, AutoCounterInputs],
    method: LogMethod,
    result: CellCountResult,
    memo: str,
) -> Dict[str, Any]:
    return {
        "method": method.value,
        "presetName": inputs.preset_name,
        "cellName": inputs.cell_name,
        "type": inputs.type,
        "totalVolume": inputs.total_volume,
        "cellsPerMl": result.cells_per_ml,
        "totalCells": result.total_cells,
        "requiredVolume": result.required_volume,
        "totalTargetCells": result.total_target_cells,
        "targetCells": inputs.target_cells,
        "targetExponent": inputs.target_exponent,
        "memo": memo or "",
        "timestamp": SERVER_TIMESTAMP,
    }


def build_hemocytometer_log(
    inputs: HemocytometerInputs, result: CellCountResult, memo: str = ""
) -> Dict[str, Any]:
    data = _cell_count_base(inputs, LogMethod.HEMOCYTOMETER, result, memo)
    data.update({
        "countedCells": inputs.counted_cells,
        "squares": inputs.squares,
        "dilutionFactor": inputs.dilution_factor,
    })
    return data


def build_auto_counter_log(
    inputs: AutoCounterInputs, result: CellCountResult, memo: str = ""
) -> Dict[str, Any]:
    data = _cell_count_base(inputs, LogMethod.AUTO_COUNTER, result, memo)
    data.update({
        "autoCountValue": inputs.auto_count_value,
        "autoCountExponent": inputs.auto_count_exponent,
        "viability": inputs.viability,
    })
    return data


def build_reagent_log(inputs: ReagentInputs, mass: float, memo: str = "") -> Dict[str, Any]:
    return {
        "method": LogMethod.REAGENT.value,
        "reagentName": inputs.reagent_name or UNKNOWN_REAGENT,
        "molecularWeight": inputs.molecular_weight,
        "volume": inputs.volume,
        "molarity": inputs.molarity,
        "mass": mass,
        "memo": memo or "",
        "timestamp": SERVER_TIMESTAMP,
    }


def mixture_lines(table: MixtureTable):
    return [
        MixtureLineRecord(
            name=line.name,
            composition=line.composition,
            unit=line.unit,
            stock=line.stock,
            kind=line.kind,
            base_volume=line.base_volume,
            final_volume=line.final_volume,
        )
        for line in table.lines
    ]


def build_mixture_preset(inputs: MixtureInputs, table: MixtureTable) -> Dict[str, Any]:
    return {
        "mixtureName": inputs.mixture_name,
        "ingredients": [line.model_dump(by_alias=True, mode="json") for line in mixture_lines(table)],
        "totalVolume": table.total_volume,
        "xMixture": table.x_mixture,
        "createdAt": SERVER_TIMESTAMP,
    }


def build_preset(inputs: PresetInputs) -> Dict[str, Any]:
    data = inputs.model_dump(by_alias=True, mode="json")
    if inputs.calculation_method is CountMethod.HEMOCYTOMETER:
        data.pop("autoCountExponent", None)
    else:
        data.pop("dilutionFactor", None)
    return data


# ---------------- reading back ----------------

def log_from_document(doc_id: str, data: Dict[str, Any]) -> DailyLog:
    return DailyLog.model_validate({**data, "id": doc_id})


def logs_from_documents(docs: Iterable[Document]) -> List[DailyLog]:
    """Readable logs only; documents in an unknown shape are logged and skipped."""
    logs = []
    for doc_id, data in docs:
        try:
            logs.append(log_from_document(doc_id, data))
        except PydanticValidationError as e:
            logger.warning("skipping unreadable log %s: %s", doc_id, e)
    return logs


def preset_from_document(doc_id: str, data: Dict[str, Any]) -> Preset:
    return Preset.model_validate({**data, "id": doc_id})


def mixture_from_document(doc_id: str, data: Dict[str, Any]) -> MixturePreset:
    return MixturePreset.model_validate({**data, "id": doc_id})
