from .base import Base
from .session import engine, async_session_factory
from .models import DatasetModel, JobModel, NameModel

__all__ = [
    "Base",
    "engine",
    "async_session_factory",
    "DatasetModel",
    "JobModel",
    "NameModel",
]
