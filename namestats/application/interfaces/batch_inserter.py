"""Abstract interface (port) for committing parsed records."""

from abc import ABC, abstractmethod

from namestats.application.interfaces.name_parser import RecordStream


class BatchInserter(ABC):
    """Port for all-or-nothing insertion of one dataset's records."""

    @abstractmethod
    async def insert(self, dataset_id: str, country_code: str, stream: RecordStream) -> int:
        """Drain *stream* into the names table inside a single transaction.

        Existing rows of the dataset are replaced. Returns the number of rows
        committed.

        Raises:
            BatchValidationError: a staged or parsed row was invalid; nothing
                was committed.
        """
        ...
