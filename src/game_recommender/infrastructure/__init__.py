"""Infrastructure layer - external systems integration.

This layer contains implementations for:
- Persistence (aiosqlite database, unit of work, repositories)
- Cache (in-process TTL cache)
- Experiments (SQLite-backed variant assignment)
- Model serving (httpx client for the remote ranking model)
"""
