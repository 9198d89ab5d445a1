# backend/clubdesk/services/base.py
"""
Base Service Pattern for the clubdesk scheduling core

Provides common functionality for all service classes including:
- Transaction management
- Logging
- Error handling
- Performance monitoring
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.clock import Clock, default_clock
from ..core.exceptions import ServiceException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class BaseService:
    """
    Base class for all service layer components.

    Provides common patterns for:
    - Database session management
    - Logging
    - Transaction handling
    - Performance monitoring
    """

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        """
        Initialize base service.

        Args:
            db: Database session
            clock: Time source; defaults to the system clock
        """
        self.db = db
        self.clock: Clock = clock or default_clock()
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Context manager for database transactions.

        Usage:
            with self.transaction():
                # Do multiple operations
                self.db.add(entity)
                # Note: commit is handled automatically

        Version conflicts and integrity errors propagate unchanged so callers
        can retry or translate them; other database errors become
        ServiceException.
        """
        try:
            yield self.db
            self.db.commit()
            self.logger.debug("Transaction committed successfully")
        except (StaleDataError, IntegrityError) as e:
            self.logger.info(f"Transaction rolled back: {type(e).__name__}")
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.logger.error(f"Transaction failed: {str(e)}")
            self.db.rollback()
            raise ServiceException(f"Database operation failed: {str(e)}") from e
        except Exception:
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Decorator to measure operation performance.

        Usage:
            @BaseService.measure_operation("select_makeup")
            def select_makeup(self, ...):
                ...
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
                start_time = time.time()
                success = False
                error_type = None

                try:
                    result = func(self, *args, **kwargs)
                    success = True
                    return result
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.time() - start_time

                    # Only log if it's actually slow
                    if elapsed > 1.0 and hasattr(self, "logger"):
                        self.logger.warning(
                            f"Slow operation detected: {operation_name} took {elapsed:.2f}s"
                        )

                    try:
                        prometheus_metrics.record_service_operation(
                            service=self.__class__.__name__,
                            operation=operation_name,
                            duration=elapsed,
                            status="success" if success else "error",
                            error_type=error_type,
                        )
                    except Exception:
                        # Don't let metrics collection break the operation
                        logger.debug("metrics recording failed", exc_info=True)

            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        """Log an operation with context."""
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})
