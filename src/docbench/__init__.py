"""
docbench - Document Store Benchmark Harness

An in-memory, schema-less document query/update/aggregation engine shared by
pluggable storage adapters, driven by a repeatable, failure-isolated
benchmark runner.
"""

__version__ = "0.1.0"
__author__ = "Systems Engineering Portfolio"
