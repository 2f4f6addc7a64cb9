from typing import Any


class InterestEngineError(Exception):
    status_code = 400
    code = "INTEREST_ERROR"
    retryable = False
    default_message = "Request could not be completed"

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, "retryable": self.retryable, **self.extra}


class SelfTargetError(InterestEngineError):
    code = "SELF_TARGET"
    default_message = "You cannot send interest to yourself"


class NotCoMemberError(InterestEngineError):
    status_code = 403
    code = "NOT_CO_MEMBER"
    default_message = "Interest can only be sent to active members of the same group"


class DuplicateInterestError(InterestEngineError):
    status_code = 409
    code = "DUPLICATE_INTEREST"
    default_message = "You have already sent interest to this user"


class CooldownError(InterestEngineError):
    status_code = 409
    code = "COOLDOWN"
    default_message = "You can send interest to this user again after the cooldown ends"


class InsufficientCreditError(InterestEngineError):
    status_code = 402
    code = "INSUFFICIENT_CREDIT"
    default_message = "Not enough credits to send interest"


class DailyLimitExceededError(InterestEngineError):
    status_code = 429
    code = "DAILY_LIMIT_EXCEEDED"
    default_message = "Daily interest limit reached"


class ReversalWindowExpiredError(InterestEngineError):
    status_code = 409
    code = "REVERSAL_WINDOW_EXPIRED"
    default_message = "Interest can no longer be cancelled"


class NotFoundError(InterestEngineError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found"


class UnauthorizedError(InterestEngineError):
    status_code = 403
    code = "UNAUTHORIZED"
    default_message = "You are not allowed to perform this action"


class TransientStoreError(InterestEngineError):
    status_code = 503
    code = "TRANSIENT_STORE_ERROR"
    retryable = True
    default_message = "Temporary storage failure, nothing was saved. Please retry"


class RateLimitedError(InterestEngineError):
    status_code = 429
    code = "RATE_LIMITED"
    retryable = True
    default_message = "Too many requests. Please slow down"
