"""Draft builder domain.

This package holds first-class types for:
- builder sessions and their workflow drafts (models)
- the session lifecycle state machine and its guards
- draft mutations that return diffs (ops)
- graph statistics and structural validation (graph)
- crash-safe session persistence (store)

The service module ties them together into command-level operations.
"""

__all__: list[str] = []
