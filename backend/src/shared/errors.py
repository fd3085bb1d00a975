"""
Typed failures raised by the testing request lifecycle.

Handlers translate these into HTTP responses (see shared.utils.error_response);
nothing inside the lifecycle core catches or retries them.
"""


class LifecycleError(Exception):
    """Base class for every expected, caller-facing failure."""
    status_code = 400


class ValidationError(LifecycleError):
    """Raised when input fails a shape or range check."""


class RequestNotFound(LifecycleError):
    status_code = 404

    def __init__(self, request_id: str):
        super().__init__(f"Testing request {request_id} not found")
        self.request_id = request_id


class BugReportNotFound(LifecycleError):
    status_code = 404

    def __init__(self, bug_report_id: str):
        super().__init__(f"Bug report {bug_report_id} not found")
        self.bug_report_id = bug_report_id


class Forbidden(LifecycleError):
    """Raised when the caller may not act on a request."""
    status_code = 403


class InvalidTransitionError(LifecycleError):
    """Raised when a status move is not in the transition whitelist."""
    status_code = 409

    def __init__(self, from_status: str, to_status: str):
        super().__init__(f"Invalid status transition: {from_status} → {to_status}")
        self.from_status = from_status
        self.to_status = to_status


class QuoteErrorReason:
    INVALID_AMOUNT = 'InvalidAmount'
    MISSING_CURRENCY = 'MissingCurrency'
    INVALID_EXPIRY = 'InvalidExpiry'
    WRONG_STATUS = 'WrongStatus'
    NO_ACTIVE_QUOTE = 'NoActiveQuote'
    EXPIRED = 'Expired'


class QuoteError(LifecycleError):

    _MESSAGES = {
        QuoteErrorReason.INVALID_AMOUNT: 'Quote amount must be greater than zero',
        QuoteErrorReason.MISSING_CURRENCY: 'Quote currency is required',
        QuoteErrorReason.INVALID_EXPIRY: 'Quote expiry must be a positive number of days',
        QuoteErrorReason.WRONG_STATUS: 'Request is not in a status that allows this quote action',
        QuoteErrorReason.NO_ACTIVE_QUOTE: 'Request has no active quote',
        QuoteErrorReason.EXPIRED: 'Quote has expired',
    }

    def __init__(self, reason: str):
        super().__init__(self._MESSAGES.get(reason, reason))
        self.reason = reason
        if reason == QuoteErrorReason.WRONG_STATUS:
            self.status_code = 409


class ClaimErrorReason:
    ALREADY_ASSIGNED = 'AlreadyAssigned'
    TERMINAL = 'Terminal'


class ClaimError(LifecycleError):
    status_code = 409

    def __init__(self, reason: str, request_id: str = ''):
        if reason == ClaimErrorReason.ALREADY_ASSIGNED:
            message = f"Testing request {request_id} is already assigned"
        else:
            message = f"Testing request {request_id} is closed and cannot be claimed"
        super().__init__(message)
        self.reason = reason
        self.request_id = request_id


class InsufficientTokens(LifecycleError):
    status_code = 402

    def __init__(self, required: int, remaining: int):
        super().__init__(f"Not enough tokens: {required} required, {remaining} remaining")
        self.required = required
        self.remaining = remaining


class ConcurrentModificationError(LifecycleError):
    """Raised by a store when the saved version no longer matches the expected one."""
    status_code = 409

    def __init__(self, request_id: str, expected_version: int):
        super().__init__(
            f"Testing request {request_id} was modified concurrently (expected version {expected_version})"
        )
        self.request_id = request_id
        self.expected_version = expected_version
