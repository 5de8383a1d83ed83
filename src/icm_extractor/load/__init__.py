"""
Load Layer - Data Persistence

This layer handles all data persistence operations.
- BigQuery load jobs (replace semantics)
- Local Parquet files for dry runs
- No business logic, just I/O operations
"""
