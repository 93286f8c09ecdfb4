"""Application services: graph validation, templates, resolver, runtime, registry."""
