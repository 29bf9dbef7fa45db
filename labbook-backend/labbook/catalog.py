from . import db
from .models import DEFAULT_EXPONENT, EXPONENT_CHOICES, CountMethod, IngredientKind, LogMethod

CALCULATORS = {
    "hemocytometer": {
        "name": "Hemocytometer",
        "log_method": LogMethod.HEMOCYTOMETER.value,
        "preset_collection": db.HEMOCYTOMETER_PRESETS,
        "suggested_keys": ["countedCells", "squares", "dilutionFactor", "totalVolume"],
        "notes": "Manual grid count; cells/mL = count / squares x dilution x 10^4.",
    },
    "autoCounter": {
        "name": "Automated Cell Counter",
        "log_method": LogMethod.AUTO_COUNTER.value,
        "preset_collection": db.AUTO_COUNTER_PRESETS,
        "suggested_keys": ["autoCountValue", "autoCountExponent", "viability", "totalVolume"],
        "notes": "Instrument reading value x 10^exponent cells/mL; viability is recorded only.",
    },
    "mixture": {
        "name": "Mixture",
        "preset_collection": db.MIXTURE_PRESETS,
        "suggested_keys": ["mixtureName", "ingredients", "totalVolume", "xMixture"],
        "notes": "Per-ingredient volumes in μL, topped up with D.W and scaled by x Mixture.",
    },
    "reagent": {
        "name": "Reagent",
        "log_method": LogMethod.REAGENT.value,
        "suggested_keys": ["reagentName", "molecularWeight", "volume", "molarity"],
        "notes": "Mass (g) = molarity (M) x molecular weight x volume (mL) / 1000.",
    },
}

BUFFER_FOLDS = [1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 20, 100]

DEFAULT_INGREDIENTS = [
    {"name": "DNA/RNA", "composition": 2, "unit": "μg", "stock": 500, "kind": IngredientKind.NUCLEIC_ACID.value},
    {"name": "Buffer", "composition": 1, "unit": "X", "stock": 10, "kind": IngredientKind.BUFFER.value},
    {"name": "Enzyme", "composition": 0.5, "unit": "μL", "stock": None, "kind": IngredientKind.VOLUME.value},
]

DEFAULT_MIXTURE_VOLUME = 100
DEFAULT_TARGET_EXPONENT = DEFAULT_EXPONENT
EXPONENTS = list(EXPONENT_CHOICES)


def preset_collection(method: CountMethod) -> str:
    return CALCULATORS[method.value]["preset_collection"]
