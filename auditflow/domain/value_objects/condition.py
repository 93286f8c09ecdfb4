"""Decision condition value object.

A condition compares one metadata field against a literal:
``amount > 1000``, ``status == "approved"``, ``type in ['a', 'b']``.
Conditions are parsed once (so the validator can reject bad syntax) and
evaluated against an instance's opaque metadata map at runtime.
"""

from __future__ import annotations

import ast
import re
from dataclasses import dataclass
from typing import Any, ClassVar

from auditflow.domain.exceptions import ConditionSyntaxException

# Longest operators first so ">=" is not read as ">".
_EXPRESSION_RE = re.compile(
    r"^\s*(?P<field>[A-Za-z_][\w.]*)\s*"
    r"(?P<op>===|!==|==|!=|>=|<=|>|<|=|\bnot_in\b|\bnot in\b|\bin\b)\s*"
    r"(?P<value>.+?)\s*$"
)

_MISSING = object()


def _parse_literal(raw: str) -> Any:
    """Parse the right-hand side of an expression into a Python value."""
    lowered = raw.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered in ("null", "none"):
        return None
    try:
        return ast.literal_eval(raw)
    except (ValueError, SyntaxError):
        # Bare word, e.g. status == approved
        return raw


def resolve_field(metadata: dict[str, Any], path: str) -> Any:
    """Return the value at a dotted path in metadata, or _MISSING.

    Top-level keys win; otherwise each segment descends into nested dicts
    (e.g. ``customFields.priority``).
    """
    if path in metadata:
        return metadata[path]
    current: Any = metadata
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class Condition:
    """Comparison of one metadata field against a literal value."""

    field: str
    operator: str
    value: Any

    OPERATORS: ClassVar[frozenset[str]] = frozenset(
        {"==", "!=", ">", "<", ">=", "<=", "in", "not_in"}
    )
    _ALIASES: ClassVar[dict[str, str]] = {
        "=": "==",
        "===": "==",
        "!==": "!=",
        "not in": "not_in",
    }
    DEFAULT_KEYWORDS: ClassVar[frozenset[str]] = frozenset(
        {"else", "default", "otherwise"}
    )

    def __post_init__(self) -> None:
        if self.operator not in self.OPERATORS:
            raise ConditionSyntaxException(
                f"{self.field} {self.operator} {self.value!r}",
                f"unsupported operator '{self.operator}'",
            )
        if self.operator in ("in", "not_in") and not isinstance(
            self.value, (list, tuple, set)
        ):
            raise ConditionSyntaxException(
                f"{self.field} {self.operator} {self.value!r}",
                f"'{self.operator}' requires a list value",
            )

    @classmethod
    def parse(cls, expression: str | dict[str, Any]) -> Condition:
        """Build a condition from an expression string or a {field, operator, value} dict."""
        if isinstance(expression, dict):
            try:
                field = expression["field"]
                operator = expression["operator"]
            except KeyError as e:
                raise ConditionSyntaxException(
                    str(expression), f"missing key {e.args[0]!r}"
                ) from e
            operator = cls._ALIASES.get(operator, operator)
            return cls(field=field, operator=operator, value=expression.get("value"))

        match = _EXPRESSION_RE.match(expression or "")
        if not match:
            raise ConditionSyntaxException(
                expression, "expected '<field> <operator> <value>'"
            )
        operator = match.group("op")
        operator = cls._ALIASES.get(operator, operator)
        return cls(
            field=match.group("field"),
            operator=operator,
            value=_parse_literal(match.group("value")),
        )

    @classmethod
    def is_default_keyword(cls, expression: str | None) -> bool:
        """Whether an edge condition marks the fallback branch (else/default)."""
        return bool(expression) and expression.strip().lower() in cls.DEFAULT_KEYWORDS

    def evaluate(self, metadata: dict[str, Any]) -> bool:
        """Evaluate against metadata. A missing field or incomparable types yield False."""
        actual = resolve_field(metadata, self.field)
        if actual is _MISSING:
            return False
        op = self.operator
        if op == "==":
            return actual == self.value or str(actual) == str(self.value)
        if op == "!=":
            return not (actual == self.value or str(actual) == str(self.value))
        if op in ("in", "not_in"):
            try:
                contained = actual in self.value
            except TypeError:
                # unhashable metadata value against a set literal
                return False
            return contained if op == "in" else not contained
        left = _as_number(actual)
        right = _as_number(self.value)
        if left is None or right is None:
            return False
        if op == ">":
            return left > right
        if op == "<":
            return left < right
        if op == ">=":
            return left >= right
        return left <= right

