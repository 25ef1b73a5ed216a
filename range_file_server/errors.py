"""Request errors and the HTTP status each one maps to."""

from http import HTTPStatus


class RequestError(Exception):
    """Base for errors the dispatcher turns into a status code."""

    status = HTTPStatus.INTERNAL_SERVER_ERROR


class MalformedRangeError(RequestError, ValueError):
    status = HTTPStatus.BAD_REQUEST


class OffsetMismatchError(RequestError):
    """A resumed upload does not start at the current end of the file."""

    status = HTTPStatus.BAD_REQUEST

    def __init__(self, expected, received):
        self.expected = expected
        self.received = received
        super().__init__(f"upload offset {received} does not match current length {expected}")


class ForbiddenPathError(RequestError):
    status = HTTPStatus.FORBIDDEN


class NotFoundError(RequestError):
    status = HTTPStatus.NOT_FOUND


class MethodNotAllowedError(RequestError):
    status = HTTPStatus.METHOD_NOT_ALLOWED


class RangeNotSatisfiableError(RequestError):
    status = HTTPStatus.REQUESTED_RANGE_NOT_SATISFIABLE

    def __init__(self, start, size):
        self.start = start
        self.size = size
        super().__init__(f"range start {start} is beyond end of resource ({size} bytes)")


class TransientIOError(Exception):
    """
    A peer went away in the middle of a transfer.

    Never raised across the dispatcher: it is carried in a TransferResult
    so the caller decides how to log it and end the response.
    """

    def __init__(self, message, cause=None):
        self.cause = cause
        super().__init__(message)
