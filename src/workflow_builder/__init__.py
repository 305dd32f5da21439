"""Workflow Draft Builder.

A local-first builder for workflow dependency graphs:
- draft sessions persisted as JSON under a per-user config directory
- an explicit lifecycle state machine (DRAFT -> VALIDATED -> COMMITTED)
- structural validation (referential integrity, acyclicity) before commit
"""

__version__ = "0.1.0"

from workflow_builder.cli.config import BuilderSettings

__all__ = ["__version__", "BuilderSettings"]
