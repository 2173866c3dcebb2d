"""
Generation storage backends.

The PostgreSQL store lives in modules.generation.storage.postgres_store
and is imported explicitly so that in-memory use needs no database
configuration.
"""

from modules.generation.storage.job_storage import (
    IGenerationStore,
    InMemoryGenerationStore,
)

__all__ = [
    "IGenerationStore",
    "InMemoryGenerationStore",
]
