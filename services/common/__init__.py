"""
Common utilities shared across the job warehouse services.

This package is intentionally small and focused on helpers that are reused
by more than one stage (e.g., company identifier canonicalization, numeric
coercion, configuration loading and the shared database base class).
"""
