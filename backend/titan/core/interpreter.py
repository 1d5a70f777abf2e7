"""
Action Interpreter - turns untrusted inference output into validated Actions.

The inference service is asked for JSON only, but may answer with prose, truncated
JSON or objects with fields missing. Nothing partially parsed leaves this module:
either a complete Action / NutritionEstimate is built or a typed error is raised.

Both entry points are pure functions of their input.
"""

import json
import logging
import math
import re
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from .actions import UNKNOWN_FOOD, Action, AddSleep, AddWater, LogFood, NutritionEstimate
from .errors import InvalidActionPayload, MalformedAction, TitanError, UnknownActionKind

logger = logging.getLogger(__name__)

ACTION_KINDS = ("add_water", "add_sleep", "log_food")

# Multipliers into the canonical unit (ml for water, hours for sleep)
WATER_UNITS: Dict[str, float] = {
    "ml": 1, "milliliter": 1, "milliliters": 1, "millilitre": 1, "millilitres": 1,
    "l": 1000, "liter": 1000, "liters": 1000, "litre": 1000, "litres": 1000,
    "glass": 250, "glasses": 250,
    "cup": 240, "cups": 240,
}
SLEEP_UNITS: Dict[str, float] = {
    "hours": 1, "hour": 1, "h": 1, "hr": 1, "hrs": 1,
    "minutes": 1 / 60, "minute": 1 / 60, "min": 1 / 60, "mins": 1 / 60,
}

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.IGNORECASE | re.DOTALL)


def interpret_command(raw_text: str) -> Action:
    """
    Interpret the classification model's reply to a spoken or typed command.

    Args:
        raw_text: Message content returned by the command-classification call

    Returns:
        AddWater, AddSleep or LogFood

    Raises:
        MalformedAction: not JSON, or not a JSON object
        UnknownActionKind: ``action`` missing or not one of add_water/add_sleep/log_food
        InvalidActionPayload: a required number is missing, non-numeric, non-finite or out of range
    """
    return _logged(_interpret_command, raw_text, "command")


def interpret_image_analysis(raw_json: str) -> NutritionEstimate:
    """
    Interpret the vision model's reply for a food photo.

    Raises:
        MalformedAction: not JSON, or not a JSON object
        InvalidActionPayload: calories/protein/carbs/fat missing, non-numeric, non-finite or negative
    """
    return _logged(_interpret_image_analysis, raw_json, "image")


def _interpret_command(raw_text: str) -> Action:
    payload = _load_object(raw_text)

    kind = payload.get("action")
    if not isinstance(kind, str) or kind not in ACTION_KINDS:
        raise UnknownActionKind(f"Unrecognized action: {kind!r}", field="action")

    if kind == "add_water":
        amount = _positive(payload, "value") * _unit_factor(payload, WATER_UNITS)
        return _build(AddWater, amount_ml=amount)

    if kind == "add_sleep":
        amount = _positive(payload, "value") * _unit_factor(payload, SLEEP_UNITS)
        return _build(AddSleep, amount_hours=amount)

    return _build(LogFood, name=_food_name(payload), **_macros(payload))


def _interpret_image_analysis(raw_json: str) -> NutritionEstimate:
    payload = _load_object(raw_json)
    return _build(NutritionEstimate, name=_food_name(payload), **_macros(payload))


def _logged(func: Callable[[str], Any], raw: str, source: str) -> Any:
    try:
        result = func(raw)
    except TitanError as e:
        logger.warning(
            f"Rejected {source} inference output: {e.message}",
            extra={"extra_fields": {"source": source, "error_kind": e.kind.value, "field": e.field}}
        )
        raise
    logger.debug(f"Interpreted {source} inference output as {result!r}")
    return result


def _load_object(raw: str) -> Dict[str, Any]:
    if not isinstance(raw, str):
        raise MalformedAction(f"Expected text, got {type(raw).__name__}")

    text = raw.strip()
    fenced = _FENCE.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedAction(f"Response is not valid JSON: {e.msg} at position {e.pos}")
    except RecursionError:
        raise MalformedAction("Response is nested too deeply to parse")

    if not isinstance(payload, dict):
        raise MalformedAction(f"Expected a JSON object, got {type(payload).__name__}")
    return payload


def _number(payload: Dict[str, Any], field: str) -> float:
    if field not in payload or payload[field] is None:
        raise InvalidActionPayload(f"Missing numeric field '{field}'", field=field)
    value = payload[field]
    # bool is an int subclass; JSON true is not a quantity
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidActionPayload(
            f"Field '{field}' must be a number, got {type(value).__name__}", field=field
        )
    try:
        number = float(value)
    except OverflowError:
        raise InvalidActionPayload(f"Field '{field}' is out of range", field=field)
    if not math.isfinite(number):
        raise InvalidActionPayload(f"Field '{field}' must be finite", field=field)
    return number


def _positive(payload: Dict[str, Any], field: str) -> float:
    number = _number(payload, field)
    if number <= 0:
        raise InvalidActionPayload(f"Field '{field}' must be greater than 0, got {number}", field=field)
    return number


def _non_negative(payload: Dict[str, Any], field: str) -> float:
    number = _number(payload, field)
    if number < 0:
        raise InvalidActionPayload(f"Field '{field}' cannot be negative, got {number}", field=field)
    return number


def _macros(payload: Dict[str, Any]) -> Dict[str, float]:
    return {
        "calories": _non_negative(payload, "calories"),
        "protein_g": _non_negative(payload, "protein"),
        "carbs_g": _non_negative(payload, "carbs"),
        "fat_g": _non_negative(payload, "fat"),
    }


def _unit_factor(payload: Dict[str, Any], units: Dict[str, float]) -> float:
    unit = payload.get("unit")
    if unit is None:
        return 1
    if not isinstance(unit, str) or unit.strip().lower() not in units:
        raise InvalidActionPayload(f"Unsupported unit: {unit!r}", field="unit")
    return units[unit.strip().lower()]


def _food_name(payload: Dict[str, Any]) -> str:
    name: Optional[Any] = payload.get("food_name")
    if isinstance(name, str) and name.strip():
        return name.strip()
    return UNKNOWN_FOOD


def _build(model, **fields):
    try:
        return model(**fields)
    except ValidationError as e:
        # Field checks above should make this unreachable
        raise InvalidActionPayload(f"Invalid {model.__name__}: {e.errors()[0]['msg']}")
