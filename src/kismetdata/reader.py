"""Backend-agnostic record reader contract."""

from abc import ABC, abstractmethod
from typing import Iterator, Optional

from kismetdata.errors import ConfigurationError
from kismetdata.models import END_OF_STREAM, Record
from kismetdata.utils.logging import get_logger

logger = get_logger(__name__)


class RecordStream:
    """
    Single-pass, pull-based stream of records.

    ``next_record()`` returns the next record or ``END_OF_STREAM``. Once the
    sentinel has been returned, or the underlying source raised, the stream
    stays exhausted and keeps returning the sentinel.
    """

    def __init__(self, records: Iterator[Record]):
        self._records: Optional[Iterator[Record]] = records
        self.count = 0

    @property
    def exhausted(self) -> bool:
        return self._records is None

    def next_record(self) -> Record:
        if self._records is None:
            return END_OF_STREAM
        try:
            record = next(self._records)
        except StopIteration:
            self._records = None
            return END_OF_STREAM
        except Exception:
            self._records = None
            raise
        if not record.present:
            self._records = None
            return END_OF_STREAM
        self.count += 1
        return record

    def __iter__(self) -> Iterator[Record]:
        return self

    def __next__(self) -> Record:
        record = self.next_record()
        if not record.present:
            raise StopIteration
        return record


class RecordReader(ABC):
    """
    Contract every backend client implements.

    A reader owns one connection (HTTP session or database handle) from
    construction until ``finish()``. Use it as a context manager so the
    handle is released on every exit path.
    """

    backend = "unknown"

    def __init__(self) -> None:
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def elements(self) -> RecordStream:
        """Issue the query and return a lazy stream over its results."""
        if self._finished:
            raise ConfigurationError(f"{self.backend} reader already finished")
        return RecordStream(self._iter_records())

    def finish(self) -> None:
        """Release the underlying handle. Safe to call more than once."""
        if self._finished:
            return
        self._finished = True
        try:
            self._release()
            logger.debug(f"Released {self.backend} reader")
        except Exception as e:
            logger.warning(f"Failed to release {self.backend} reader: {e}")

    @abstractmethod
    def _iter_records(self) -> Iterator[Record]:
        """
        Start the query and return an iterator over decoded records.

        The first request runs before this returns so that connection
        failures surface from ``elements()``; later pages are fetched lazily.
        """

    @abstractmethod
    def _release(self) -> None:
        pass

    def __enter__(self) -> "RecordReader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.finish()
