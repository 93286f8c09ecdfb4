"""Domain value objects: immutable, self-validating values with no identity."""

from auditflow.domain.value_objects.condition import Condition, resolve_field

__all__ = ["Condition", "resolve_field"]
