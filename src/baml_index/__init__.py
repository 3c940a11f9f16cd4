"""BAML Index - compile a BAML file into an inspection bundle."""
from .bundle import compile_record_index, record_rows

__all__ = ["compile_record_index", "record_rows"]
