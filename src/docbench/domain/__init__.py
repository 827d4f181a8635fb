"""Domain layer - document semantics and benchmark statistics.

Nothing in this package performs I/O; adapters and the application layer
build on it.
"""
