"""
shared/__init__.py

Errors, models and helpers used across the daemon's packages.

- errors: Typed failures and the operator-facing message mapping
- models: Classification, plan and result envelope types
- utils: JSON parsing, prompt filling and logging helpers
"""
