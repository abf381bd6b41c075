"""
Nexus - Utility Tools
======================
Pure computation tools: math, unit conversion, number statistics, JSON
formatting, and text statistics.  None of them touch the network.
"""

from __future__ import annotations

import ast
import json
import math
import operator
import re
import statistics
from typing import Any, Callable

from nexus.src.tools.registry import Tool, ToolParams

# ── Math ───────────────────────────────────────────────────────────────

_BIN_OPS: dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS: dict[type, Callable[[Any], Any]] = {ast.UAdd: operator.pos, ast.USub: operator.neg}
_FUNCTIONS: dict[str, Callable[..., float]] = {
    "sqrt": math.sqrt,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "abs": abs,
    "floor": math.floor,
    "ceil": math.ceil,
    "round": round,
    "pow": math.pow,
    "log": math.log,
    "exp": math.exp,
}
_CONSTANTS: dict[str, float] = {"pi": math.pi, "e": math.e}
_MAX_EXPONENT = 10_000


class _InvalidExpression(ValueError):
    pass


def _eval_node(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
        left, right = _eval_node(node.left), _eval_node(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > _MAX_EXPONENT:
            raise ValueError("exponent too large")
        result = _BIN_OPS[type(node.op)](left, right)
        if isinstance(result, complex):
            raise ValueError("result is not a real number")
        return result
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand))
    if isinstance(node, ast.Name) and node.id.lower() in _CONSTANTS:
        return _CONSTANTS[node.id.lower()]
    if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and node.func.id in _FUNCTIONS and not node.keywords:
        return _FUNCTIONS[node.func.id](*(_eval_node(a) for a in node.args))
    raise _InvalidExpression(ast.dump(node))


def safe_eval(expression: str) -> float:
    """
    Evaluate an arithmetic expression without ``eval``.

    Raises ``_InvalidExpression`` for anything outside numbers, arithmetic
    operators, the whitelisted math functions, and ``pi`` / ``e``.
    """
    try:
        tree = ast.parse(expression.strip(), mode="eval")
    except SyntaxError as exc:
        raise _InvalidExpression(str(exc)) from exc
    return _eval_node(tree)


def format_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return str(value)


async def math_calculate(params: ToolParams) -> str:
    expression = str(params.get("expression", ""))
    if not expression.strip():
        return "Invalid expression. Only numbers and basic math operators allowed."
    try:
        result = safe_eval(expression)
    except _InvalidExpression:
        return "Invalid expression. Only numbers and basic math operators allowed."
    except (ArithmeticError, ValueError, TypeError) as exc:
        return f"Math Error: {exc}"
    return f"📊 Calculation Result:\n\n**Expression:** {expression}\n**Result:** {format_number(result)}\n\n*Calculated by Math Tool*"


# ── Unit conversion ────────────────────────────────────────────────────

# Factors to the category's base unit (metre, kilogram)
UNIT_TABLES: dict[str, dict[str, float]] = {
    "length": {"mm": 0.001, "cm": 0.01, "m": 1.0, "km": 1000.0, "inch": 0.0254, "foot": 0.3048, "yard": 0.9144, "mile": 1609.34},
    "weight": {"mg": 0.000001, "g": 0.001, "kg": 1.0, "oz": 0.0283495, "lb": 0.453592, "ton": 1000.0},
}
_TEMPERATURE_UNITS = ("c", "f", "k")


def _to_celsius(value: float, unit: str) -> float:
    if unit == "f":
        return (value - 32) * 5 / 9
    if unit == "k":
        return value - 273.15
    return value


def _from_celsius(value: float, unit: str) -> float:
    if unit == "f":
        return value * 9 / 5 + 32
    if unit == "k":
        return value + 273.15
    return value


def convert_units(value: float, from_unit: str, to_unit: str) -> float:
    """
    Convert *value* between two units of the same category.

    Raises ``KeyError`` when the units are unknown or of different categories.
    """
    src, dst = from_unit.lower(), to_unit.lower()
    if src in _TEMPERATURE_UNITS and dst in _TEMPERATURE_UNITS:
        return _from_celsius(_to_celsius(value, src), dst)
    for table in UNIT_TABLES.values():
        if src in table and dst in table:
            return value * table[src] / table[dst]
    raise KeyError(f"{from_unit} or {to_unit}")


async def unit_converter(params: ToolParams) -> str:
    from_unit = str(params.get("from_unit", ""))
    to_unit = str(params.get("to_unit", ""))
    try:
        value = float(params.get("value"))  # type: ignore[arg-type]
        result = convert_units(value, from_unit, to_unit)
    except KeyError:
        return f"Unknown units: {from_unit} or {to_unit}"
    except (TypeError, ValueError) as exc:
        return f"Conversion Error: {exc}"
    return f"🔄 Unit Conversion:\n\n**{format_number(value)} {from_unit.upper()}** = **{result:.4f} {to_unit.upper()}**"


# ── Number statistics ──────────────────────────────────────────────────

def describe_numbers(numbers: list[float]) -> dict[str, float]:
    return {
        "count": len(numbers),
        "mean": statistics.fmean(numbers),
        "median": statistics.median(numbers),
        "std_dev": statistics.pstdev(numbers),
        "min": min(numbers),
        "max": max(numbers),
        "range": max(numbers) - min(numbers),
    }


async def data_statistics(params: ToolParams) -> str:
    numbers = params.get("numbers")
    if not isinstance(numbers, list) or not numbers:
        return "Please provide an array of numbers"
    try:
        stats = describe_numbers([float(n) for n in numbers])
    except (TypeError, ValueError, statistics.StatisticsError) as exc:
        return f"Statistics Error: {exc}"
    return (
        "📊 Data Statistics:\n\n"
        f"**Count:** {stats['count']}\n"
        f"**Mean:** {stats['mean']:.2f}\n"
        f"**Median:** {stats['median']:.2f}\n"
        f"**Std Dev:** {stats['std_dev']:.2f}\n"
        f"**Min:** {format_number(stats['min'])}\n"
        f"**Max:** {format_number(stats['max'])}\n"
        f"**Range:** {format_number(stats['range'])}"
    )


# ── JSON ───────────────────────────────────────────────────────────────

async def json_formatter(params: ToolParams) -> str:
    raw = params.get("json", "")
    action = params.get("action", "format")
    try:
        parsed = json.loads(raw) if isinstance(raw, str) else raw
    except json.JSONDecodeError as exc:
        return f"❌ JSON Error: {exc}"

    if action == "validate":
        if isinstance(parsed, dict):
            keys = list(parsed)
        elif isinstance(parsed, list):
            keys = [str(i) for i in range(len(parsed))]
        else:
            keys = []
        return f"✅ JSON is valid!\n\nKeys found: {', '.join(keys)}"

    formatted = json.dumps(parsed, indent=2, ensure_ascii=False)
    return f"📋 Formatted JSON:\n\n```json\n{formatted}\n```"


# ── Text statistics ────────────────────────────────────────────────────

_WORDS_PER_MINUTE = 200


def describe_text(text: str) -> dict[str, Any]:
    words = text.split()
    return {
        "characters": len(text),
        "characters_no_spaces": len(re.sub(r"\s", "", text)),
        "words": len(words),
        "lines": len(text.split("\n")),
        "paragraphs": len(re.split(r"\n\n+", text.strip())),
        "reading_minutes": math.ceil(len(words) / _WORDS_PER_MINUTE),
        "longest_word": max(words, key=len) if words else "",
    }


async def text_statistics(params: ToolParams) -> str:
    text = params.get("text")
    if not isinstance(text, str) or not text.strip():
        return "Please provide some text to analyse"
    s = describe_text(text)
    return (
        "📝 Text Statistics:\n\n"
        f"**Characters:** {s['characters']} ({s['characters_no_spaces']} without spaces)\n"
        f"**Words:** {s['words']}\n"
        f"**Lines:** {s['lines']}\n"
        f"**Paragraphs:** {s['paragraphs']}\n"
        f"**Reading Time:** ~{s['reading_minutes']} min\n"
        f"**Longest Word:** \"{s['longest_word']}\" ({len(s['longest_word'])} chars)"
    )


def utility_tools() -> list[Tool]:
    return [
        Tool("math_calculate", "Perform mathematical calculations. Supports arithmetic, sqrt, trigonometry, log/exp, pi and e.", math_calculate, {"expression": "string"}),
        Tool("unit_converter", "Convert between units of length, weight and temperature (c, f, k).", unit_converter, {"value": "number", "from_unit": "string", "to_unit": "string"}),
        Tool("data_statistics", "Calculate statistics (mean, median, standard deviation, min, max) from a list of numbers.", data_statistics, {"numbers": "array of numbers"}),
        Tool("json_formatter", "Parse, validate, and format JSON data.", json_formatter, {"json": "string", "action": "format | validate"}),
        Tool("text_statistics", "Analyze text: word count, character count, reading time, etc.", text_statistics, {"text": "string"}),
    ]
