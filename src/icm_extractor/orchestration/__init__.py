"""
Orchestration Layer - Workflow Coordination

This layer coordinates the extraction loop.
- Composes extract, transform, and load operations
- Cron scheduling and persistent-error backoff
"""
