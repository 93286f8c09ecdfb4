"""Identifier source for auditflow.

Primary keys, node ids minted when a template is instantiated, and the
visit id stamped on every node entry are all CUID2 strings from here.
"""

from cuid2 import cuid_wrapper

_next_cuid = cuid_wrapper()


def generate_cuid() -> str:
    """Return a fresh CUID2 identifier."""
    value = _next_cuid()
    if not isinstance(value, str):
        raise TypeError(f"cuid2 produced {type(value).__name__} instead of str")
    return value
