"""Exception hierarchy for the ingestion pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Tuple

if TYPE_CHECKING:
    from models.records import IngestResult


class IngestError(Exception):
    """Base exception for all ingestion failures."""

    kind = "ingest_error"


class ValidationError(IngestError):
    """A required telemetry field is missing or not numeric."""

    kind = "validation_error"

    def __init__(self, field: str, detail: str) -> None:
        self.field = field
        self.detail = detail
        super().__init__(f"{field}: {detail}")


class CredentialIssuanceError(IngestError):
    """The store credential could not be obtained."""

    kind = "credential_issuance_error"

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class StoreError(IngestError):
    """Base for failures talking to the remote document store."""

    kind = "store_error"

    def __init__(self, message: str, *, path: str, status_code: Optional[int] = None) -> None:
        self.path = path
        self.status_code = status_code
        super().__init__(message)


class StoreUnavailable(StoreError):
    """Transport-level failure: the store could not be reached."""

    kind = "store_unavailable"

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"Store unreachable writing {path!r}: {detail}", path=path)


class StoreRejected(StoreError):
    """The store answered with a non-2xx status."""

    kind = "store_rejected"

    def __init__(self, path: str, status_code: int, body: str) -> None:
        self.body = body
        super().__init__(
            f"Store rejected {path!r} with status {status_code}: {body or 'no body'}",
            path=path,
            status_code=status_code,
        )


class PartialOrFullWriteFailure(IngestError):
    """One or both legs of the current/history dual write failed."""

    kind = "write_failure"

    def __init__(self, result: IngestResult) -> None:
        self.result = result
        failed = ", ".join(result.failed_legs)
        super().__init__(
            f"Write failed for {failed} of device {result.device_id!r} "
            f"at timestamp {result.timestamp_millis}"
        )

    @property
    def outcome(self) -> str:
        return self.result.outcome

    @property
    def failed_legs(self) -> Tuple[str, ...]:
        return self.result.failed_legs
