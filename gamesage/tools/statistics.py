"""
Statistics engine and the two calculation tools built on it.

The model is told never to compute aggregates itself; every sum, mean,
standard deviation, or rating average it reports is routed through here.

Pure functions:
    calculate_sum, calculate_average, population_std_dev, weighted_rating_average

Tool entry points (argument bag in, JSON-serialisable dict out):
    execute_calculation, calculate_rating_average
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

from gamesage.tools.errors import InvalidArgument, InvalidState
from gamesage.tools.models import ToolParameter, ToolSchema

OPERATIONS = ("sum", "average", "std_dev")

EXECUTE_CALCULATION_TOOL = ToolSchema(
    name="execute_calculation",
    description=(
        "Perform statistical calculations on arrays of numbers. Calculate sum, average (mean), "
        "and population standard deviation. Always use this tool instead of computing "
        "statistics yourself. 'numbers' is required; 'operations' is optional and may contain "
        "any of: sum, average, std_dev. If operations is omitted or empty, all three are computed."
    ),
    parameters={
        "numbers": ToolParameter(
            type="array",
            required=True,
            items=ToolParameter(type="number"),
            description="Array of numbers to perform calculations on",
        ),
        "operations": ToolParameter(
            type="array",
            items=ToolParameter(type="string", enum=list(OPERATIONS)),
            description="Operations to perform: sum, average, std_dev (standard deviation). "
                        "If not specified, all operations will be performed.",
        ),
    },
)

CALCULATE_RATING_AVERAGE_TOOL = ToolSchema(
    name="calculate_rating_average",
    description=(
        "Calculate weighted average rating from RAWG API rating data. Takes an array of rating "
        "objects (each with required numeric id and count, optional title and percent) and "
        "computes sum(id * count) / sum(count), rounded to 2 decimals. Counts must be >= 0 "
        "and at least one must be positive. "
        "Rating IDs: 5=exceptional, 4=recommended, 3=meh, 1=skip."
    ),
    parameters={
        "ratings": ToolParameter(
            type="array",
            required=True,
            description="Array of rating objects from RAWG API",
            items=ToolParameter(
                type="object",
                properties={
                    "id": ToolParameter(
                        type="number",
                        required=True,
                        description="Rating ID (5=exceptional, 4=recommended, 3=meh, 1=skip)",
                    ),
                    "title": ToolParameter(
                        type="string",
                        description="Rating title (exceptional, recommended, meh, skip)",
                    ),
                    "count": ToolParameter(
                        type="number",
                        required=True,
                        minimum=0,
                        description="Number of ratings at this level",
                    ),
                    "percent": ToolParameter(
                        type="number",
                        description="Percentage of total ratings",
                    ),
                },
            ),
        ),
    },
)


def is_number(value: Any) -> bool:
    """True for finite ints and floats. Booleans are not numbers here."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # int too large for a float
        return False


def _require_sequence(values: Any, field: str) -> Sequence[Any]:
    if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
        raise InvalidArgument(f"{field} must be an array", field=field)
    return values


def _require_numbers(values: Any, field: str = "numbers") -> Sequence[float]:
    values = _require_sequence(values, field)
    for index, value in enumerate(values):
        if not is_number(value):
            raise InvalidArgument(
                f"All elements in {field} array must be valid numbers "
                f"(got {value!r} at index {index})",
                field=f"{field}[{index}]",
            )
    return values


def calculate_sum(values: Sequence[float]) -> float:
    """Arithmetic total. Empty input sums to 0."""
    return sum(_require_numbers(values))


def calculate_average(values: Sequence[float]) -> float:
    """Arithmetic mean. Empty input averages to 0, not NaN."""
    values = _require_numbers(values)
    if not values:
        return 0
    return sum(values) / len(values)


def population_std_dev(values: Sequence[float]) -> float:
    """
    Population standard deviation: sqrt(mean((x - mean)^2)).

    Empty and single-element inputs return 0.
    """
    values = _require_numbers(values)
    if len(values) < 2:
        return 0
    mean = sum(values) / len(values)
    variance = sum((value - mean) ** 2 for value in values) / len(values)
    return math.sqrt(variance)


def weighted_rating_average(entries: Any) -> dict[str, Any]:
    """
    Weighted average over a categorical rating distribution.

    Each entry has an integer tier ``id`` and a ``count`` (plus optional
    ``title`` and ``percent``). The average is sum(id * count) / sum(count),
    rounded to 2 decimal places.

    Args:
        entries: Sequence of rating dicts, e.g. RAWG's ``ratings`` array

    Returns:
        Dict with weightedAverage, totalRatings, breakdown, and formula

    Raises:
        InvalidArgument: If entries is not a non-empty sequence, an entry lacks
            numeric id/count, or a count is negative
        InvalidState: If every count is zero

    Example:
        >>> weighted_rating_average([{"id": 5, "count": 4}, {"id": 4, "count": 2}, {"id": 3, "count": 1}])
        {'weightedAverage': 4.43, 'totalRatings': 7, ...}
    """
    entries = _require_sequence(entries, "ratings")
    if not entries:
        raise InvalidArgument("ratings array cannot be empty", field="ratings")

    for index, entry in enumerate(entries):
        if not isinstance(entry, dict) or not is_number(entry.get("id")) or not is_number(entry.get("count")):
            raise InvalidArgument(
                "Each rating must have numeric id and count properties",
                field=f"ratings[{index}]",
            )
        if entry["count"] < 0:
            raise InvalidArgument(
                "Rating count cannot be negative", field=f"ratings[{index}].count"
            )

    total_weighted_score = 0
    total_count = 0
    breakdown = []
    for entry in entries:
        weighted_score = entry["id"] * entry["count"]
        total_weighted_score += weighted_score
        total_count += entry["count"]
        breakdown.append({
            "id": entry["id"],
            "title": entry.get("title") or "unknown",
            "count": entry["count"],
            "percent": entry.get("percent") or 0,
            "weightedScore": weighted_score,
        })

    if total_count == 0:
        raise InvalidState("Total rating count is zero, cannot calculate average")

    weighted_average = total_weighted_score / total_count
    terms = " + ".join(f"{item['id']}×{item['count']}" for item in breakdown)

    return {
        "weightedAverage": round(weighted_average, 2),
        "totalRatings": total_count,
        "breakdown": breakdown,
        "formula": f"({terms}) / {total_count} = {weighted_average:.2f}",
    }


def execute_calculation(arguments: dict[str, Any]) -> dict[str, Any]:
    """Run the requested operations (default: all) over ``arguments["numbers"]``."""
    numbers = _require_numbers(arguments.get("numbers"))
    operations = arguments.get("operations") or list(OPERATIONS)

    handlers = {
        "sum": calculate_sum,
        "average": calculate_average,
        "std_dev": population_std_dev,
    }

    results: dict[str, float] = {}
    for operation in operations:
        if operation not in handlers:
            raise InvalidArgument(f"Unknown operation: {operation}", field="operations")
        results[operation] = handlers[operation](numbers)

    return {
        "input": {"numbers": list(numbers), "count": len(numbers)},
        "results": results,
    }


def calculate_rating_average(arguments: dict[str, Any]) -> dict[str, Any]:
    """Tool entry point for weighted_rating_average."""
    return weighted_rating_average(arguments.get("ratings"))
