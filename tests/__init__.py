"""Job Warehouse Test Suite.

This package contains unit and integration tests for the job warehouse pipeline.

Test Structure:
- unit/: Unit tests for individual functions and stage runners
- integration/: End-to-end tests against a real PostgreSQL database
"""

__version__ = "0.1.0"
