"""FastAPI endpoints for provider ratings and reviews."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from marketplace.domain.errors import InvalidRating
from marketplace.domain.ratings.encoding import to_felt
from marketplace.domain.ratings.schemas import (
	HasReviewedResponse,
	RatingSummaryResponse,
	ReviewListResponse,
	ReviewResponse,
	SubmitReviewRequest,
	SubmitReviewResponse,
)
from marketplace.domain.ratings.service import RatingAggregator
from marketplace.infra.auth import AuthenticatedUser, get_current_user, require_roles

router = APIRouter(tags=["ratings"])


def get_aggregator(request: Request) -> RatingAggregator:
	return request.app.state.ratings


def _invalid(detail: str) -> HTTPException:
	return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


@router.get("/providers/{provider_id}/rating", response_model=RatingSummaryResponse)
async def provider_rating(
	provider_id: str,
	ratings: RatingAggregator = Depends(get_aggregator),
) -> RatingSummaryResponse:
	try:
		summary = await ratings.get_provider_rating(provider_id)
	except ValueError:
		raise _invalid("invalid_provider_id") from None
	return RatingSummaryResponse.from_model(summary)


@router.get("/providers/{provider_id}/rating/ledger", response_model=RatingSummaryResponse)
async def provider_ledger_rating(
	provider_id: str,
	ratings: RatingAggregator = Depends(get_aggregator),
) -> RatingSummaryResponse:
	try:
		summary = await ratings.get_ledger_rating(provider_id)
	except ValueError:
		raise _invalid("invalid_provider_id") from None
	return RatingSummaryResponse.from_model(summary)


@router.get("/providers/{provider_id}/reviews", response_model=ReviewListResponse)
async def provider_reviews(
	provider_id: str,
	offset: int = Query(default=0, ge=0),
	limit: int = Query(default=5, ge=1, le=100),
	min_rating: Optional[float] = Query(default=None, ge=0, le=5),
	max_rating: Optional[float] = Query(default=None, ge=0, le=5),
	ratings: RatingAggregator = Depends(get_aggregator),
) -> ReviewListResponse:
	try:
		reviews = await ratings.list_reviews(
			provider_id,
			offset,
			limit,
			min_rating=min_rating,
			max_rating=max_rating,
		)
	except ValueError:
		raise _invalid("invalid_provider_id") from None
	return ReviewListResponse(
		review_ids=[review.id for review in reviews],
		reviews=[ReviewResponse.from_model(review) for review in reviews],
		offset=offset,
		limit=limit,
	)


@router.get("/providers/{provider_id}/reviews/{review_id}", response_model=ReviewResponse)
async def provider_review(
	provider_id: str,
	review_id: int,
	ratings: RatingAggregator = Depends(get_aggregator),
) -> ReviewResponse:
	try:
		review = await ratings.get_review(provider_id, review_id)
	except ValueError:
		raise _invalid("invalid_provider_id") from None
	return ReviewResponse.from_model(review)


@router.get("/reviews/check", response_model=HasReviewedResponse)
async def check_has_reviewed(
	reviewer_id: str = Query(..., min_length=1),
	service_id: str = Query(..., min_length=1),
	ratings: RatingAggregator = Depends(get_aggregator),
) -> HasReviewedResponse:
	try:
		has_reviewed = await ratings.check_has_reviewed(reviewer_id, service_id)
	except ValueError:
		raise _invalid("invalid_identifier") from None
	return HasReviewedResponse(has_reviewed=has_reviewed)


@router.post(
	"/providers/{provider_id}/reviews",
	response_model=SubmitReviewResponse,
	status_code=status.HTTP_201_CREATED,
)
async def submit_review(
	provider_id: str,
	payload: SubmitReviewRequest,
	user: AuthenticatedUser = Depends(get_current_user),
	ratings: RatingAggregator = Depends(get_aggregator),
) -> SubmitReviewResponse:
	identifiers = {}
	for field, value in (("reviewer_id", user.id), ("provider_id", provider_id), ("service_id", payload.service_id)):
		try:
			identifiers[field] = to_felt(value)
		except ValueError:
			raise _invalid(f"invalid_{field}") from None
	try:
		review_id = await ratings.submit_review(
			identifiers["reviewer_id"],
			identifiers["provider_id"],
			identifiers["service_id"],
			payload.rating,
			payload.content,
		)
	except InvalidRating:
		raise
	except ValueError:
		raise _invalid("invalid_content") from None
	return SubmitReviewResponse(review_id=review_id)


@router.post(
	"/providers/{provider_id}/reviews/{review_id}/verify",
	status_code=status.HTTP_204_NO_CONTENT,
)
async def verify_review(
	provider_id: str,
	review_id: int,
	_: AuthenticatedUser = Depends(require_roles("admin")),
	ratings: RatingAggregator = Depends(get_aggregator),
) -> None:
	try:
		await ratings.verify_review(provider_id, review_id)
	except ValueError:
		raise _invalid("invalid_provider_id") from None
