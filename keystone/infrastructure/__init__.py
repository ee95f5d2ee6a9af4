"""Infrastructure layer: data persistence and storage integration.

- **database**: Async SQLAlchemy engine, generic repository, pagination
  and transaction helpers
- **repositories**: Concrete repositories bound to one table each
"""
