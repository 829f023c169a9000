# backend/lesson_engine/services/base.py
"""
Base Service Pattern for the lesson engine

Every service gets:
- The SQLAlchemy session it owns transactions on
- The injected business clock (all "now"/"today" decisions go through it)
- A class-named logger
- Operation timing exported to Prometheus via @measure_operation
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.clock import BusinessClock, get_clock
from ..core.exceptions import PersistenceFailureException, RepositoryException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


class BaseService:
    """Base class for the engine's services."""

    def __init__(self, db: Session, clock: Optional[BusinessClock] = None):
        """
        Args:
            db: Database session
            clock: Business clock; the process-wide clock when omitted
        """
        self.db = db
        self.clock = clock or get_clock()
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        One unit of work: commit on success, roll back on any error.

        Storage errors (SQLAlchemy or repository) surface as
        PersistenceFailureException; domain errors propagate unchanged.
        """
        try:
            yield self.db
            self.db.commit()
        except (SQLAlchemyError, RepositoryException) as e:
            self.logger.error(f"Unit of work failed, rolling back: {str(e)}")
            self.db.rollback()
            raise PersistenceFailureException(f"Database operation failed: {str(e)}") from e
        except Exception as e:
            self.logger.debug(f"Unit of work rolled back: {type(e).__name__}")
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Time a service method and export the result.

        Usage:
            @BaseService.measure_operation("approve_request")
            def approve_request(self, ...):
                ...
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
                started = time.perf_counter()
                error_type: Optional[str] = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - started
                    if elapsed > SLOW_OPERATION_SECONDS:
                        self.logger.warning(
                            f"Slow operation detected: {operation_name} took {elapsed:.2f}s"
                        )
                    try:
                        prometheus_metrics.record_service_operation(
                            service=self.__class__.__name__,
                            operation=operation_name,
                            duration=elapsed,
                            status="error" if error_type else "success",
                            error_type=error_type,
                        )
                    except Exception:
                        # Metrics never break the operation
                        logger.debug("Failed to record metrics for %s", operation_name)

            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})
