"""Application use cases (orchestration across repositories and services)."""
