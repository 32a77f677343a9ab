class ReservationError(Exception):
    """Base error for booking engine operations."""


class NotFound(ReservationError):
    pass


class InvalidRequest(ReservationError):
    pass


class InvalidInterval(InvalidRequest):
    pass


class Conflict(ReservationError):
    pass


class StorageFailure(ReservationError):
    pass
