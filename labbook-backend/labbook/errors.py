from typing import Any, Dict, Optional


class LabBookError(Exception):
    """Base class for errors that end a single calculator or store operation."""

    code = "error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message}


class ValidationError(LabBookError):
    """A numeric or text input is missing, malformed, or out of range."""

    code = "validation"
    status_code = 422

    def __init__(self, field: str, constraint: str):
        super().__init__(f"{field}: {constraint}")
        self.field = field
        self.constraint = constraint

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "field": self.field, "message": self.message}


class TargetExceedsAvailableError(LabBookError):
    code = "target_exceeds_available"
    status_code = 422

    def __init__(self, required_ml: float, total_volume: float):
        super().__init__(
            "Target cell count exceeds what the current volume can supply "
            f"({required_ml:.4g} mL needed, {total_volume:.4g} mL available)."
        )
        self.required_ml = required_ml
        self.total_volume = total_volume


class PersistenceError(LabBookError):
    code = "persistence"
    status_code = 502

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        detail = f": {cause}" if cause else ""
        super().__init__(f"Failed to {operation}{detail}")
        self.operation = operation


class NotAuthenticatedError(LabBookError):
    code = "not_authenticated"
    status_code = 401

    def __init__(self):
        super().__init__("Please verify sign-in.")
