"""
Metadata repository for artifact records.
Pages are 1-based, newest upload first, ties broken by id.
"""
import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from . import models
from .errors import RepositoryError

PAGE_SIZE = int(os.getenv("ARTIFACT_PAGE_SIZE", "20"))
# largest OFFSET a 64-bit SQL integer can bind
MAX_OFFSET = 2 ** 63 - 1

logger = logging.getLogger(__name__)


class ArtifactRepository(ABC):
    @abstractmethod
    def retrieve_list(self, page: int) -> List[models.ArtifactRecord]:
        """Return one bounded page of records"""

    @abstractmethod
    def create(self, record: models.ArtifactRecord) -> models.ArtifactRecord:
        """Persist one record; raises RepositoryError on failure"""


class SqlArtifactRepository(ArtifactRepository):
    """Opens a short-lived session per call so one instance serves every request"""

    def __init__(self, session_factory: sessionmaker, page_size: int = PAGE_SIZE):
        self.session_factory = session_factory
        self.page_size = page_size

    def retrieve_list(self, page: int) -> List[models.ArtifactRecord]:
        offset = (max(page, 1) - 1) * self.page_size
        if offset > MAX_OFFSET:
            return []
        with self.session_factory() as db:
            q = db.query(models.ArtifactRecord).order_by(
                models.ArtifactRecord.upload_date_time.desc(),
                models.ArtifactRecord.id.desc(),
            )
            try:
                return q.offset(offset).limit(self.page_size).all()
            except SQLAlchemyError as e:
                raise RepositoryError(f"Database error: {e}") from e

    def create(self, record: models.ArtifactRecord) -> models.ArtifactRecord:
        with self.session_factory() as db:
            try:
                db.add(record)
                db.commit()
                db.refresh(record)
            except SQLAlchemyError as e:
                db.rollback()
                raise RepositoryError(f"Database error: {e}") from e
        logger.info(f"action=record id={record.id} url={record.url!r}")
        return record


class InMemoryArtifactRepository(ArtifactRepository):
    def __init__(self, page_size: int = PAGE_SIZE):
        self.page_size = page_size
        self.records: List[models.ArtifactRecord] = []
        self._lock = threading.Lock()

    def retrieve_list(self, page: int) -> List[models.ArtifactRecord]:
        offset = (max(page, 1) - 1) * self.page_size
        with self._lock:
            ordered = sorted(
                self.records,
                key=lambda r: (r.upload_date_time, r.id),
                reverse=True,
            )
        return ordered[offset:offset + self.page_size]

    def create(self, record: models.ArtifactRecord) -> models.ArtifactRecord:
        with self._lock:
            record.id = len(self.records) + 1
            self.records.append(record)
        logger.debug(f"stored record id={record.id} in memory")
        return record
