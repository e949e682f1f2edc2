"""Backends turning query expressions into other forms (executor commands, text)."""

from .command import (
    CommandError,
    build_load_columns_command,
    columns_for_fields,
    expression_to_command,
    query_to_command,
)
from .text import render_expression, render_query

__all__ = [
    "CommandError",
    "build_load_columns_command",
    "columns_for_fields",
    "expression_to_command",
    "query_to_command",
    "render_expression",
    "render_query",
]
