"""
Base class for services that talk to the database.

Each service owns its own session unless one is handed in, in which case
the caller keeps control of commit and close. Services handed the same
session must also be handed the same `session_lock`; every use of the
session happens while holding it.
"""

import threading
from contextlib import contextmanager
from typing import NoReturn, Optional

from sqlalchemy.orm import Session

from ..exceptions import BaseError, ErrorCode, RepositoryError
from ..utils.logger import ContextAwareLogger, get_logger


class SessionManagedService:
    """
    Service that owns and manages its own database session.
    """

    def __init__(
        self,
        session: Optional[Session] = None,
        logger: Optional[ContextAwareLogger] = None,
        session_lock: Optional[threading.RLock] = None,
    ):
        """
        Args:
            session: Optional existing session (for testing or coordination)
            logger: Optional logger instance
            session_lock: Lock shared by every service using `session`
        """
        if session is not None:
            self.session = session
            self._owns_session = False
        else:
            self.session = self._create_session()
            self._owns_session = True

        self.logger = logger or get_logger()
        self.session_lock = session_lock or threading.RLock()

    def _create_session(self) -> Session:
        """Create a new session from the global database manager."""
        from ..db.db_config import get_db_manager

        return get_db_manager().session_factory()

    def _handle_repository_exception(self, operation: str, exception: Exception) -> NoReturn:
        """
        Roll back and re-raise a database failure as RepositoryError.

        BaseError instances pass through unchanged.
        """
        self.session.rollback()
        if isinstance(exception, BaseError):
            raise exception
        raise RepositoryError(
            f"Error in {operation}: {str(exception)}",
            error_code=ErrorCode.DATABASE_ERROR,
            cause=exception,
            operation=operation,
        )

    @contextmanager
    def transaction(self):
        """
        Context manager for transactional operations.

        Usage:
            with service.transaction():
                service.do_something()
                # Auto-commits on success, rollback on exception
        """
        try:
            yield self.session
            if self._owns_session:
                self.session.commit()
        except Exception:
            if self._owns_session:
                self.session.rollback()
            raise

    def commit(self):
        if self._owns_session:
            self.session.commit()

    def rollback(self):
        if self._owns_session:
            self.session.rollback()

    def close(self):
        """Close the session if we own it."""
        if self._owns_session and self.session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            self.rollback()
        else:
            self.commit()
        self.close()
