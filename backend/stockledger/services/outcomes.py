# Overview: Structured results returned across service boundaries instead of exceptions.

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

OK = "ok"
WARNING = "warning"
VALIDATION_ERROR = "validation_error"
FORBIDDEN = "forbidden"
NOT_FOUND = "not_found"
BUSY = "busy"
INFRA_ERROR = "infra_error"

HTTP_STATUS = {
    VALIDATION_ERROR: 400,
    FORBIDDEN: 403,
    NOT_FOUND: 404,
    BUSY: 409,
    INFRA_ERROR: 503,
}


@dataclass(frozen=True)
class Outcome:
    """
    Result of a mutating operation.

    - ok: primary and companion writes succeeded
    - warning: primary write succeeded, a companion write did not
    - validation_error / forbidden / not_found / busy: rejected, nothing mutated
    - infra_error: storage failed, nothing mutated; caller may resubmit
    """
    status: str
    data: Any = None
    error: str | None = None
    warning: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status in (OK, WARNING)

    def http_status(self, success: int = 200) -> int:
        if self.succeeded:
            return success
        return HTTP_STATUS.get(self.status, 500)

    def to_dict(self) -> dict:
        body: dict = {"status": self.status}
        if self.data is not None:
            body["data"] = self.data
        if self.error:
            body["error"] = self.error
        if self.warning:
            body["warning"] = self.warning
        return body


def success(data: Any = None) -> Outcome:
    return Outcome(status=OK, data=data)


def succeeded_with_warning(data: Any, warning: str) -> Outcome:
    return Outcome(status=WARNING, data=data, warning=warning)


def rejected(error: str) -> Outcome:
    return Outcome(status=VALIDATION_ERROR, error=error)


def forbidden(error: str) -> Outcome:
    return Outcome(status=FORBIDDEN, error=error)


def not_found(error: str) -> Outcome:
    return Outcome(status=NOT_FOUND, error=error)


def busy(error: str) -> Outcome:
    return Outcome(status=BUSY, error=error)


def infra_failure(error: str) -> Outcome:
    return Outcome(status=INFRA_ERROR, error=error)
