"""Command-line entrypoint, configuration and output for the builder."""

__all__: list[str] = []
