"""BAML Verify - conformance verdicts for BAML files."""
from .logic import verify_file

__all__ = ["verify_file"]
