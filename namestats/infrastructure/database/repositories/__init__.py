from .dataset_repository import SQLAlchemyDatasetRepository
from .job_repository import SQLAlchemyJobRepository

__all__ = [
    "SQLAlchemyDatasetRepository",
    "SQLAlchemyJobRepository",
]
