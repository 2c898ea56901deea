from __future__ import annotations


class GiftServiceError(Exception):
    """Base for errors returned to gift-suggestion callers as a tagged code."""

    code = "internal"
    reason: str | None = None

    def to_dict(self) -> dict[str, str]:
        payload = {"code": self.code, "message": str(self)}
        if self.reason is not None:
            payload["reason"] = self.reason
        return payload


class UnauthenticatedError(GiftServiceError):
    code = "unauthenticated"


class InvalidArgumentError(GiftServiceError):
    code = "invalid-argument"


class ResourceExhaustedError(GiftServiceError):
    code = "resource-exhausted"


class UnavailableError(GiftServiceError):
    code = "unavailable"


class InternalError(GiftServiceError):
    code = "internal"


class UnparseableSuggestionsError(InternalError):
    reason = "unparseable-response"
