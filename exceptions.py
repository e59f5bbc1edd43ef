"""
Tracker Exceptions
Error kinds raised by the dose tracking engine
"""

from typing import Optional


class TrackerError(Exception):
    """Base class for all medicine tracker errors"""

    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidRangeError(TrackerError, ValueError):
    """Raised when a date range is reversed or otherwise unusable"""

    status_code = 400

    def __init__(self, range_start, range_end):
        self.range_start = range_start
        self.range_end = range_end
        super().__init__(
            f"Invalid date range: {range_start} is after {range_end}"
        )


class InvalidMedicineError(TrackerError, ValueError):
    """Raised when a medicine definition violates its invariants"""

    status_code = 400


class NotFoundError(TrackerError, LookupError):
    """Raised when a tracker, medicine or dose instance does not exist"""

    status_code = 404

    def __init__(self, kind: str, identifier):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier} not found")


class DoseAlreadyResolvedError(TrackerError):
    """Raised when mutating a dose instance that is already taken, missed or skipped"""

    status_code = 409

    def __init__(self, dose_id: int, status: str):
        self.dose_id = dose_id
        self.status = status
        super().__init__(
            f"Dose instance {dose_id} is already {status} and cannot be changed"
        )


class ConcurrentModificationError(TrackerError):
    """Raised when a tracker changed underneath a write and the retry budget ran out"""

    status_code = 409

    def __init__(self, tracker_id: int, attempts: Optional[int] = None):
        self.tracker_id = tracker_id
        self.attempts = attempts
        if attempts:
            message = f"Tracker {tracker_id} kept changing; gave up after {attempts} attempts"
        else:
            message = f"Tracker {tracker_id} was modified concurrently"
        super().__init__(message)


class PersistenceFailure(TrackerError):
    """Raised when the store fails to read or write a tracker"""

    status_code = 503

    def __init__(self, tracker_id: Optional[int], cause: Exception):
        self.tracker_id = tracker_id
        self.cause = cause
        super().__init__(f"Persistence failure for tracker {tracker_id}: {cause}")


__all__ = [
    "TrackerError",
    "InvalidRangeError",
    "InvalidMedicineError",
    "NotFoundError",
    "DoseAlreadyResolvedError",
    "ConcurrentModificationError",
    "PersistenceFailure",
]
