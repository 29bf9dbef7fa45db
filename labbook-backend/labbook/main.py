import logging
from datetime import date
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from . import catalog, config, db, formulas, history, records
from .auth import require_user
from .errors import LabBookError
from .models import (
    AutoCounterRequest, CalendarResponse, CatalogResponse, CellCountResponse,
    CountMethod, DailyLog, HemocytometerRequest, HistoryResponse,
    MemoUpdateRequest, MixturePreset, MixtureRequest, MixtureTableResponse,
    Preset, PresetRequest, ReagentRequest, ReagentResponse, SavedResponse,
    SummaryResponse, TypesResponse,
)
from .summary import describe_cell_count, format_mass, summarize_logs
from .validation import (
    validate_auto_counter, validate_hemocytometer, validate_mixture,
    validate_preset, validate_reagent,
)

logging.basicConfig(
    level=config.log_level(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="LabBook Backend", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _fail(e: LabBookError) -> HTTPException:
    logger.info("%s rejected: %s", e.code, e.message)
    return HTTPException(status_code=e.status_code, detail=e.to_dict())


def _tz(name: Optional[str]):
    return history.resolve_tz(name or config.default_timezone())


def _logs(user_id: str, collection: str = db.DAILY_LOGS) -> List[DailyLog]:
    return records.logs_from_documents(db.list_documents(user_id, collection))


@app.get("/health")
def health():
    return {"ok": True}


@app.get("/catalog", response_model=CatalogResponse)
def get_catalog():
    return CatalogResponse(
        calculators=catalog.CALCULATORS,
        exponent_choices=catalog.EXPONENTS,
        buffer_folds=catalog.BUFFER_FOLDS,
        default_ingredients=catalog.DEFAULT_INGREDIENTS,
        default_total_volume=catalog.DEFAULT_MIXTURE_VOLUME,
        default_exponent=catalog.DEFAULT_TARGET_EXPONENT,
    )


# ---------------- cell count ----------------

def _cell_count_response(log_id, data, result) -> CellCountResponse:
    return CellCountResponse(
        log_id=log_id,
        method=data["method"],
        cells_per_ml=result.cells_per_ml,
        total_cells=result.total_cells,
        required_volume=result.required_volume,
        total_target_cells=result.total_target_cells,
        target_exponent=result.target_exponent,
        summary=describe_cell_count(result),
    )


@app.post("/cell-count/hemocytometer", response_model=CellCountResponse)
def hemocytometer(req: HemocytometerRequest, user_id: str = Depends(require_user)):
    try:
        inputs = validate_hemocytometer(req)
        cells_per_ml = formulas.hemocytometer_concentration(
            inputs.counted_cells, inputs.squares, inputs.dilution_factor, inputs.total_volume
        )
        result = formulas.cell_count(
            cells_per_ml, inputs.total_volume, inputs.target_cells, inputs.target_exponent
        )
        data = records.build_hemocytometer_log(inputs, result, req.memo)
        log_id = db.create_document(user_id, db.DAILY_LOGS, data, prefix="log_")
    except LabBookError as e:
        raise _fail(e)
    return _cell_count_response(log_id, data, result)


@app.post("/cell-count/auto-counter", response_model=CellCountResponse)
def auto_counter(req: AutoCounterRequest, user_id: str = Depends(require_user)):
    try:
        inputs = validate_auto_counter(req)
        cells_per_ml = formulas.auto_counter_concentration(
            inputs.auto_count_value, inputs.auto_count_exponent, inputs.viability, inputs.total_volume
        )
        result = formulas.cell_count(
            cells_per_ml, inputs.total_volume, inputs.target_cells, inputs.target_exponent
        )
        data = records.build_auto_counter_log(inputs, result, req.memo)
        log_id = db.create_document(user_id, db.DAILY_LOGS, data, prefix="log_")
    except LabBookError as e:
        raise _fail(e)
    return _cell_count_response(log_id, data, result)


# ---------------- cell-count presets ----------------

@app.get("/presets/{method}", response_model=List[Preset])
def list_presets(method: CountMethod, user_id: str = Depends(require_user)):
    try:
        docs = db.list_documents(user_id, catalog.preset_collection(method))
    except LabBookError as e:
        raise _fail(e)
    presets = [records.preset_from_document(i, d) for i, d in docs]
    return sorted(presets, key=lambda p: p.preset_name.lower())


@app.post("/presets/{method}", response_model=SavedResponse)
def save_preset(method: CountMethod, req: PresetRequest, user_id: str = Depends(require_user)):
    try:
        inputs = validate_preset(method, req)
        preset_id = records.preset_id(inputs.preset_name, method)
        db.put_document(user_id, catalog.preset_collection(method), preset_id, records.build_preset(inputs))
    except LabBookError as e:
        raise _fail(e)
    return SavedResponse(id=preset_id, message=f'Preset "{inputs.preset_name}" saved.')


@app.delete("/presets/{method}/{preset_id}")
def delete_preset(method: CountMethod, preset_id: str, user_id: str = Depends(require_user)):
    try:
        db.delete_document(user_id, catalog.preset_collection(method), preset_id)
    except LabBookError as e:
        raise _fail(e)
    return {"ok": True, "id": preset_id}


# ---------------- mixture ----------------

@app.post("/mixtures/calculate", response_model=MixtureTableResponse)
def calculate_mixture(req: MixtureRequest):
    try:
        inputs = validate_mixture(req)
        table = formulas.mixture_table(inputs.ingredients, inputs.total_volume, inputs.x_mixture)
    except LabBookError as e:
        raise _fail(e)
    return MixtureTableResponse(
        lines=records.mixture_lines(table),
        total_volume=table.total_volume,
        x_mixture=table.x_mixture,
        scaled_total_volume=table.scaled_total_volume,
        diluent_volume=table.diluent.base_volume,
    )


@app.get("/mixtures", response_model=List[MixturePreset])
def list_mixtures(user_id: str = Depends(require_user)):
    try:
        docs = db.list_documents(user_id, db.MIXTURE_PRESETS)
    except LabBookError as e:
        raise _fail(e)
    mixtures = [records.mixture_from_document(i, d) for i, d in docs]
    return sorted(mixtures, key=lambda m: m.created_at.timestamp() if m.created_at else 0, reverse=True)


@app.post("/mixtures", response_model=SavedResponse)
def save_mixture(req: MixtureRequest, user_id: str = Depends(require_user)):
    try:
        inputs = validate_mixture(req, require_name=True)
        table = formulas.mixture_table(inputs.ingredients, inputs.total_volume, inputs.x_mixture)
        mixture_id = db.create_document(
            user_id, db.MIXTURE_PRESETS, records.build_mixture_preset(inputs, table), prefix="mix_"
        )
    except LabBookError as e:
        raise _fail(e)
    return SavedResponse(id=mixture_id, message=f'Preset "{inputs.mixture_name}" saved.')


@app.delete("/mixtures/{mixture_id}")
def delete_mixture(mixture_id: str, user_id: str = Depends(require_user)):
    try:
        db.delete_document(user_id, db.MIXTURE_PRESETS, mixture_id)
    except LabBookError as e:
        raise _fail(e)
    return {"ok": True, "id": mixture_id}


# ---------------- reagent ----------------

@app.post("/reagents", response_model=ReagentResponse)
def reagent(req: ReagentRequest, user_id: str = Depends(require_user)):
    try:
        inputs = validate_reagent(req)
        mass = formulas.reagent_mass(inputs.molarity, inputs.molecular_weight, inputs.volume)
        data = records.build_reagent_log(inputs, mass, req.memo)
        log_id = db.create_document(user_id, db.REAGENT_LOGS, data, prefix="rgt_")
    except LabBookError as e:
        raise _fail(e)
    return ReagentResponse(
        log_id=log_id,
        reagent_name=data["reagentName"],
        mass=mass,
        summary=f"{data['reagentName']}: {format_mass(mass)}",
    )


@app.get("/reagents/logs", response_model=List[DailyLog])
def reagent_logs(user_id: str = Depends(require_user)):
    try:
        return history.newest_first(_logs(user_id, db.REAGENT_LOGS))
    except LabBookError as e:
        raise _fail(e)


# ---------------- history ----------------

@app.get("/logs", response_model=HistoryResponse)
def logs_by_date(
    day: Optional[date] = Query(default=None, alias="date"),
    tz: Optional[str] = None,
    user_id: str = Depends(require_user),
):
    try:
        zone = _tz(tz)
        view = history.build_history_view(_logs(user_id), day or history.today(zone), zone)
    except LabBookError as e:
        raise _fail(e)
    return HistoryResponse(date=view.day, logs=list(view.logs), marked_dates=list(view.marked_dates))


@app.get("/logs/calendar", response_model=CalendarResponse)
def logs_calendar(
    year: int = Query(ge=1),
    month: int = Query(ge=1, le=12),
    tz: Optional[str] = None,
    user_id: str = Depends(require_user),
):
    try:
        days = history.month_calendar(_logs(user_id), year, month, _tz(tz))
    except LabBookError as e:
        raise _fail(e)
    return CalendarResponse(year=year, month=month, days=days)


@app.get("/logs/summary/today", response_model=SummaryResponse)
def logs_today(tz: Optional[str] = None, user_id: str = Depends(require_user)):
    try:
        zone = _tz(tz)
        day = history.today(zone)
        logs = history.todays_summary(_logs(user_id), day, zone)
    except LabBookError as e:
        raise _fail(e)
    return SummaryResponse(date=day, logs=logs, text=summarize_logs(logs))


@app.get("/logs/types", response_model=TypesResponse)
def logs_types(limit: int = Query(default=10, ge=1, le=50), user_id: str = Depends(require_user)):
    try:
        return TypesResponse(types=history.recent_types(_logs(user_id), limit))
    except LabBookError as e:
        raise _fail(e)


@app.patch("/logs/{log_id}/memo", response_model=DailyLog)
def update_memo(log_id: str, req: MemoUpdateRequest, user_id: str = Depends(require_user)):
    try:
        db.update_fields(user_id, db.DAILY_LOGS, log_id, {"memo": req.memo})
        data = db.get_document(user_id, db.DAILY_LOGS, log_id)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except LabBookError as e:
        raise _fail(e)
    return records.log_from_document(log_id, data)
