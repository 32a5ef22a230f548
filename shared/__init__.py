"""
Shared utilities for the ACL policy engine.

This package aggregates the ambient building blocks used by acl_engine:

- config: Engine configuration via pydantic-settings
- logging: Structured logging with correlation context
- metrics: Prometheus counters for policy decisions
- errors: Canonical error types and responses

Do not import from acl_engine into shared/.
"""
