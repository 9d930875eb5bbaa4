"""Domain-level exceptions shared by the posts, social, chat and feed services."""

from __future__ import annotations


class DomainError(Exception):
	"""Base class for errors surfaced to a caller.

	`reason` is the machine-readable detail sent to clients; `status_code` is
	the HTTP status the API layer maps it onto.
	"""

	reason: str = "unknown"
	status_code: int = 400

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class ValidationFailed(DomainError):
	reason = "invalid"
	status_code = 400


class NotAuthorized(DomainError):
	reason = "not_authorized"
	status_code = 403


class NotFound(DomainError):
	reason = "not_found"
	status_code = 404


class RateLimited(DomainError):
	reason = "rate_limited"
	status_code = 429


class UpstreamUnavailable(DomainError):
	reason = "upstream_unavailable"
	status_code = 503
