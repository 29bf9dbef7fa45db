from typing import Iterable, Optional

from .formulas import CellCountResult
from .models import DailyLog, LogMethod


def format_scientific(num: Optional[float]) -> str:
    if num is None:
        return "-"
    coefficient, exponent = f"{num:.2e}".split("e")
    return f"{coefficient} x 10^{int(exponent)}"


def format_volume(volume: Optional[float]) -> str:
    return "-" if volume is None else f"{volume:.2f}"


def format_mass(mass: Optional[float]) -> str:
    return "-" if mass is None else f"{mass:.4f} g"


def describe_cell_count(result: CellCountResult) -> str:
    parts = [
        f"{format_scientific(result.cells_per_ml)} cells/mL",
        f"total {format_scientific(result.total_cells)} cells",
    ]
    if result.total_target_cells is not None:
        parts.append(f"target {format_scientific(result.total_target_cells)} cells")
    if result.required_volume is not None:
        parts.append(f"take {format_volume(result.required_volume)} μL")
    return ", ".join(parts)


def describe_log(log: DailyLog) -> str:
    if log.method is LogMethod.REAGENT:
        line = (
            f"{log.reagent_name}: {format_mass(log.mass)} "
            f"({log.molarity} M in {log.volume} mL, MW {log.molecular_weight})"
        )
    else:
        label = log.cell_name or log.preset_name or "Unnamed cells"
        if log.type:
            label = f"{label} - {log.type}"
        line = f"[{log.method.value}] {label}: total {format_scientific(log.total_cells)} cells"
        if log.viability is not None:
            line += f", viability {log.viability:g}%"
        if log.total_target_cells is not None:
            line += f", target {format_scientific(log.total_target_cells)} cells"
        if log.required_volume is not None:
            line += f", take {format_volume(log.required_volume)} μL"
    if log.memo:
        line += f" | memo: {log.memo}"
    return line


def summarize_logs(logs: Iterable[DailyLog]) -> str:
    lines = [describe_log(log) for log in logs]
    if not lines:
        return "No records for this day."
    return f"{len(lines)} record(s):\n" + "\n".join(lines)
