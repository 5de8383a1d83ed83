"""
Extract Layer - Pure I/O to the ICM REST API

This layer handles all external data fetching with no business logic.
- No imports from transform or load layers
- Returns raw data, indexed for the merge step
- Handles authentication, session reuse and retries
"""
