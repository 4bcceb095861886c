"""
Typed errors raised by the bookkeeping services.

    LedgerError
    +-- ValidationError            bad input, caught before any write
    |   +-- InsufficientStock      sale larger than what the batch has left
    +-- NotFoundError              row missing or owned by someone else
    +-- StoreWriteError            the database or object store rejected a write
        +-- PartialWriteError      a write succeeded and its companion did not

Every error carries a machine-readable ``code`` and an HTTP ``status_code``;
``bookledger.main`` turns them into ``{"detail": ..., "code": ...}`` responses.
"""


class LedgerError(Exception):
    code: str = "LEDGER_ERROR"
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    code = "VALIDATION_ERROR"
    status_code = 400


class InsufficientStock(ValidationError):
    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, requested: int, available: int):
        super().__init__(f"Cannot sell {requested} units. Only {available} available.")
        self.requested = requested
        self.available = available


class NotFoundError(LedgerError):
    code = "NOT_FOUND"
    status_code = 404


class StoreWriteError(LedgerError):
    code = "STORE_WRITE_FAILED"
    status_code = 502


class PartialWriteError(StoreWriteError):
    code = "PARTIAL_WRITE"

    def __init__(self, message: str, orphaned: str):
        super().__init__(message)
        self.orphaned = orphaned
