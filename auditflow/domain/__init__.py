"""Domain layer: graph entities, enums, value objects and exceptions.

No infrastructure dependencies.
"""
