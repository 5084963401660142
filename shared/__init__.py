"""
Shared utilities for the Eiga rooms service.

This package aggregates common building blocks:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request/user correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry decorator for outbound collaborator calls
- base_service: FastAPI service skeleton

Do not import from service_* packages into shared/.
"""
