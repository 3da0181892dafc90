"""
Base service with session management shared by every service.

Services receive a SQLAlchemy session (usually the request-scoped session
of the global DatabaseManager) and group their writes in `transaction()`
blocks. Nested blocks on the same session join the outermost one, so an
operation composed from several services commits exactly once.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Callable, NoReturn, Optional

from sqlalchemy.orm import Session

from ..db.db_base import utc_now
from ..exceptions import BaseError, ErrorCode, ServiceError
from ..utils.logger import get_logger

_DEPTH_KEY = "gateway_control.transaction_depth"


class SessionManagedService:
    """Service bound to a database session."""

    def __init__(
        self,
        session: Optional[Session] = None,
        logger=None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize service with a session.

        Args:
            session: Session to use; defaults to the global manager's scoped session
            logger: Optional logger instance
            clock: Source of "now"; injectable for tests
        """
        if session is None:
            from ..db.db_config import get_db_manager

            session = get_db_manager().scoped_session
        self.session = session
        self.logger = logger or get_logger()
        self.clock = clock or utc_now

    def now(self) -> datetime:
        return self.clock()

    @contextmanager
    def transaction(self):
        """
        Context manager for transactional operations.

        Usage:
            with service.transaction():
                service.session.add(record)
                # Commits on success, rolls back on exception
        """
        info = self.session.info
        depth = info.get(_DEPTH_KEY, 0)
        info[_DEPTH_KEY] = depth + 1
        try:
            yield self.session
            if depth == 0:
                self.session.commit()
        except Exception:
            if depth == 0:
                self.session.rollback()
            raise
        finally:
            info[_DEPTH_KEY] = depth

    def _handle_service_exception(
        self, operation: str, exception: Exception, entity_id: Optional[str] = None
    ) -> NoReturn:
        """
        Re-raise control plane errors untouched and wrap anything else.

        Args:
            operation: Operation being performed
            exception: Exception that occurred
            entity_id: Optional ID of the record involved

        Raises:
            BaseError: the original error, or a ServiceError wrapping it
        """
        if isinstance(exception, BaseError):
            raise exception

        error_msg = f"Error in {operation}: {str(exception)}"
        self.logger.error(
            error_msg,
            extra={
                "operation": operation,
                "entity_id": entity_id,
                "error_type": type(exception).__name__,
            },
        )
        raise ServiceError(
            error_msg,
            error_code=ErrorCode.DATABASE_ERROR,
            operation=operation,
            entity_id=entity_id,
            cause=exception,
        ) from exception
