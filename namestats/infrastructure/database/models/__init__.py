from .dataset_models import DatasetModel, NameModel
from .job_models import JobModel

__all__ = [
    "DatasetModel",
    "NameModel",
    "JobModel",
]
