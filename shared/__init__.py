"""
Shared utilities for the Graph access layer.

This package aggregates common building blocks consumed by all services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with trace correlation and identifier masking
- metrics: Prometheus metrics helpers
- errors: Canonical error types, error kinds and responses
- error_classifier: Mapping of raw provider failures onto error kinds
- retry: Retry executor with provider-aware backoff
- base_service: FastAPI service scaffolding

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""
