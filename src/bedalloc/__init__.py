"""
Command-line entry point for urgency-first bed and resource allocation.
"""

from .cli import app


def main() -> None:
    # Delegate to Typer app so `uv run bedalloc ...` works.
    app()
