"""Ratings domain exports."""

from .ledger import HttpRatingLedger, InMemoryRatingLedger, RatingLedger
from .models import LedgerRating, ProviderRatingSummary, RatingWeights, Review
from .service import RatingAggregator

__all__ = [
	"HttpRatingLedger",
	"InMemoryRatingLedger",
	"LedgerRating",
	"ProviderRatingSummary",
	"RatingAggregator",
	"RatingLedger",
	"RatingWeights",
	"Review",
]
