"""Error taxonomy for job submission, provider transport and job state."""

from __future__ import annotations

from typing import Any


class PromptValidationError(ValueError):
    """Client-caused: prompt missing or too short. Raised before job creation."""


class ConfigurationError(RuntimeError):
    """Operator-fixable: the provider credential is not configured."""


class JobNotFoundError(KeyError):
    """No job is registered under the requested identifier."""

    def __init__(self, job_id: str) -> None:
        super().__init__(job_id)
        self.job_id = job_id

    def __str__(self) -> str:
        return f"Job not found: {self.job_id}"


class JobStateError(RuntimeError):
    """A transition would violate the job lifecycle."""


class ProviderTransportError(RuntimeError):
    """Network-level failure talking to the provider."""

    def to_detail(self) -> dict[str, Any]:
        return {"type": "transport", "message": str(self)}


class ProviderHTTPError(ProviderTransportError):
    """Provider answered with a non-success status."""

    def __init__(self, status_code: int, body: str, *, context: str = "Provider error") -> None:
        super().__init__(f"{context}: {status_code} {body[:500]}")
        self.status_code = status_code
        self.body = body

    def to_detail(self) -> dict[str, Any]:
        return {
            "type": "transport",
            "message": str(self),
            "status": self.status_code,
            "body": self.body,
        }


class ProviderFallbackError(ProviderTransportError):
    """Both the JSON attempt and the multipart retry were rejected."""

    def __init__(self, json_attempt: ProviderHTTPError, form_attempt: ProviderHTTPError) -> None:
        super().__init__(
            f"Provider initial error (json {json_attempt.status_code}) "
            f"and form-data retry (status {form_attempt.status_code})"
        )
        self.json_attempt = json_attempt
        self.form_attempt = form_attempt

    def to_detail(self) -> dict[str, Any]:
        return {
            "type": "transport",
            "message": str(self),
            "json_attempt": {
                "status": self.json_attempt.status_code,
                "text": self.json_attempt.body,
            },
            "form_attempt": {
                "status": self.form_attempt.status_code,
                "text": self.form_attempt.body,
            },
        }


class UnrecognizedPayloadError(RuntimeError):
    """Provider reported success but nothing extractable was found."""

    def __init__(self, message: str, payload: Any) -> None:
        super().__init__(message)
        self.payload = payload

    def to_detail(self) -> dict[str, Any]:
        return {"type": "shape", "message": str(self), "payload": self.payload}
