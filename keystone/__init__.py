"""Keystone - scaffold for building typed CRUD HTTP APIs.

Keystone bundles the pieces every resource-oriented API ends up needing,
built with FastAPI and SQLAlchemy's async ORM.

Architecture Overview:
- **API Layer**: FastAPI routes, middleware and DTO shaping
- **Core Layer**: Configuration, logging, tracing and the error taxonomy
- **Service Layer**: Entity services holding business rules
- **Infrastructure Layer**: Generic repository, pagination and transactions

Every storage failure is translated into a structured ``KeystoneError`` at
the repository boundary, so everything above it only deals with typed
errors or explicit ``None`` results.
"""
