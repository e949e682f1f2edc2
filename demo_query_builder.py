#!/usr/bin/env python3
"""
Demo: Build a query expression, then write it out both ways.

Shows the text rendering, the executor command, the persisted YAML
and the analyzer report for the example expression.
"""

import json

from qexpr.analyzer import analyze_expression
from qexpr.backends import build_load_columns_command, columns_for_fields, render_expression
from qexpr.examples import build_example_expression, build_example_schema
from qexpr.serialization import expression_to_yaml


def main():
    schema = build_example_schema()
    expr = build_example_expression()

    print("=" * 80)
    print("QUERY BUILDER DEMO")
    print("=" * 80)

    print("\nEXPRESSION:")
    print("-" * 80)
    print(render_expression(expr))

    print("\nCOMMAND:")
    print("-" * 80)
    command = build_load_columns_command(
        database="embargo",
        columns=columns_for_fields(schema.values()),
        query=expr,
        request_id="demo",
    )
    print(json.dumps(command, indent=2, ensure_ascii=False))

    print("\nPERSISTED (YAML):")
    print("-" * 80)
    print(expression_to_yaml(expr))

    report = analyze_expression(expr)
    print("ANALYSIS:")
    print("-" * 80)
    print(f"Nodes: {report.total_nodes} ({report.total_leaves} queries, {report.total_parents} operators)")
    print(f"Depth: {report.max_depth}")
    print(f"Submittable: {report.is_submittable}")
    for warning in report.warnings:
        print(f"  ⚠ {warning}")


if __name__ == "__main__":
    main()
