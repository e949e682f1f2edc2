"""
Query Expression (qexpr) Package

Builds nested boolean filter expressions (WHERE clauses) over the fields
of a remote tabular dataset, one structural edit at a time.

ARCHITECTURAL GUARANTEE:
------------------------
This package contains ZERO knowledge of:
    - Rendering or drag/drop gestures
    - Network transport to the query executor
    - Executing conditions against data
    - Which operators make sense for which field types

It defines EXPRESSION STRUCTURE only, plus the two ways to write it out:
    - serialization: durable, round-trip persistence (JSON/YAML)
    - backends.command: one-way submission command for the executor
"""

__version__ = "0.1.0"
