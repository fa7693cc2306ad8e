"""Patient Records - data access and caching for patient and address records.

The package is organised along Hexagonal Architecture lines:

- ``patient_records.domain``: models, validation, cache keys and ports
- ``patient_records.adapters``: storage (DuckDB, in-memory) and cache (memory, Redis) adapters
- ``patient_records.services``: cache-aside services consumed by the API and CLI
- ``patient_records.infrastructure``: configuration, logging, request scope and wiring
- ``patient_records.api``: FastAPI application
"""

__version__ = "1.0.0"
