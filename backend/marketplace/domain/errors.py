"""Typed failures shared by the presence, relay and ratings layers."""

from __future__ import annotations


class MarketplaceError(Exception):
	"""Base class for errors raised by the marketplace core."""

	code = "marketplace_error"


class TransientStoreError(MarketplaceError):
	"""Backing store unreachable or timed out."""

	code = "store_unavailable"


class ConfigurationError(MarketplaceError):
	"""Malformed endpoint URL or credentials. Fatal at startup."""

	code = "configuration_error"


class ReviewNotFound(MarketplaceError):
	code = "review_not_found"

	def __init__(self, provider_id: int, review_id: int) -> None:
		super().__init__(f"review {review_id} not found for provider {provider_id}")
		self.provider_id = provider_id
		self.review_id = review_id


class InvalidRating(MarketplaceError, ValueError):
	"""Rating outside [0, 5] or not on the half-point grid."""

	code = "invalid_rating"


class AlreadyReviewed(MarketplaceError):
	code = "already_reviewed"


class RatingLedgerError(MarketplaceError):
	"""The rating ledger rejected a call."""

	code = "rating_ledger_error"


class RatingLedgerUnavailable(RatingLedgerError):
	code = "rating_ledger_unavailable"
