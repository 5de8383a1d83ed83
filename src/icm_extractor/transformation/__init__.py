"""
Transformation Layer - Pure, Deterministic Functions

This layer merges the fetched datasets into one typed frame.
- Pure functions (input → output)
- No I/O operations
- Unit testable
"""
