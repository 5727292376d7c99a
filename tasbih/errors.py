"""
Error taxonomy shared by the store, the service, the HTTP layer and the client.

Every error carries a machine-readable ``code`` and the HTTP status the API
answers with. The client transport maps the same codes back to these classes,
so both sides of the wire raise the same exceptions.
"""


class CounterError(Exception):
    code = "COUNTER_ERROR"
    status_code = 500
    default_message = "Counter operation failed"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {"code": self.code, "message": self.message}


class InvalidGoal(CounterError):
    code = "INVALID_GOAL"
    status_code = 400
    default_message = "goal must be a positive integer"


class InvalidName(CounterError):
    code = "INVALID_NAME"
    status_code = 400
    default_message = "participant name must not be empty"


class InvalidRequest(CounterError):
    code = "INVALID_REQUEST"
    status_code = 400
    default_message = "malformed request"


class NotFound(CounterError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "counter not found"


class Forbidden(CounterError):
    code = "FORBIDDEN"
    status_code = 403
    default_message = "only the creator can reset this counter"


class AlreadyCompleted(CounterError):
    """Increment refused because the goal is already reached.

    Informational for clients: someone else got there first.
    """

    code = "ALREADY_COMPLETED"
    status_code = 409
    default_message = "goal already reached"


class Transient(CounterError):
    """Timeout, connection failure or server-side error. Retryable."""

    code = "TRANSIENT"
    status_code = 503
    default_message = "service temporarily unavailable"


ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (InvalidGoal, InvalidName, InvalidRequest, NotFound, Forbidden, AlreadyCompleted)
}


def error_from_payload(status_code, payload):
    """Rebuild a CounterError from an API error body.

    Unknown codes fall back on the status: 4xx answers keep their message as an
    InvalidRequest, anything else is transient.
    """
    code = None
    message = None
    if isinstance(payload, dict):
        code = payload.get("code")
        message = payload.get("message")

    cls = ERRORS_BY_CODE.get(code)
    if cls is None:
        if status_code == 404:
            cls = NotFound
        elif status_code == 409:
            cls = AlreadyCompleted
        elif status_code == 403:
            cls = Forbidden
        elif 400 <= status_code < 500:
            cls = InvalidRequest
        else:
            cls = Transient
    return cls(message)
