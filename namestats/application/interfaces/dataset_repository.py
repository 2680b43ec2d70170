"""Abstract repository interface (port) for datasets and their parse status."""

from abc import ABC, abstractmethod

from namestats.domain.entities.dataset import Dataset, DatasetStatus


class DatasetRepository(ABC):
    """Port for dataset persistence — implemented in the infrastructure layer."""

    @abstractmethod
    async def get_by_id(self, dataset_id: str) -> Dataset | None:
        ...

    @abstractmethod
    async def create(self, dataset: Dataset) -> Dataset:
        """Persist a new dataset and return it with the generated ID."""
        ...

    @abstractmethod
    async def update_status(self, dataset_id: str, status: DatasetStatus) -> None:
        """Raises DatasetNotFoundError if the dataset does not exist."""
        ...

    @abstractmethod
    async def update_failed(self, dataset_id: str, message: str) -> None:
        """Mark the dataset failed and drop any name rows stored for it."""
        ...

    @abstractmethod
    async def update_completed(self, dataset_id: str, row_count: int) -> None:
        ...
