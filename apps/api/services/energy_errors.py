"""
Error taxonomy for the energy engine.

Validation errors are raised before any I/O and are never worth retrying.
Store errors are transient and carry enough context for a retry decision.
Conflicts (already activated, nothing to recalibrate) are NOT errors; they
come back as typed outcomes from the ledger and recalibration services.
"""
import logging
from contextlib import contextmanager
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError

logger = logging.getLogger(__name__)


class EnergyEngineError(Exception):
    """Base class for energy engine failures."""


class EnergyValidationError(EnergyEngineError):
    """Caller-fixable input problem."""

    def __init__(self, detail: str, field: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        self.field = field


class StoreUnavailableError(EnergyEngineError):
    """The backing store failed in a way a retry may fix."""

    retryable = True

    def __init__(self, user_id: Optional[UUID], operation: str, cause: Optional[BaseException] = None):
        super().__init__(f"Store unavailable during {operation} for user {user_id}")
        self.user_id = user_id
        self.operation = operation
        self.cause = cause


class LedgerInvariantError(EnergyEngineError):
    """Duplicate ledger rows for one key. Should be impossible with the unique constraint in place."""

    def __init__(self, key: tuple, record_ids: list):
        super().__init__(f"Duplicate activation records for key {key}: {record_ids}")
        self.key = key
        self.record_ids = record_ids


@contextmanager
def translate_store_errors(user_id: Optional[UUID], operation: str):
    """
    Re-raise connection-level store failures as StoreUnavailableError.

    Constraint violations are left alone: callers treat those as idempotent
    outcomes, not infrastructure failures.
    """
    try:
        yield
    except (IntegrityError, EnergyEngineError):
        raise
    except (OperationalError, InterfaceError) as e:
        logger.warning(
            f"Store unavailable during {operation}",
            extra={"extra_fields": {"user_id": str(user_id), "operation": operation, "error": str(e)}},
        )
        raise StoreUnavailableError(user_id, operation, e) from e
    except DBAPIError as e:
        if not e.connection_invalidated:
            raise
        logger.warning(
            f"Store connection lost during {operation}",
            extra={"extra_fields": {"user_id": str(user_id), "operation": operation, "error": str(e)}},
        )
        raise StoreUnavailableError(user_id, operation, e) from e
