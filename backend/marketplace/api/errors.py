"""Global error handlers ensuring request_id is included in JSON responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from marketplace.domain.errors import (
	AlreadyReviewed,
	InvalidRating,
	MarketplaceError,
	RatingLedgerError,
	RatingLedgerUnavailable,
	ReviewNotFound,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[MarketplaceError], int], ...] = (
	(ReviewNotFound, status.HTTP_404_NOT_FOUND),
	(InvalidRating, status.HTTP_422_UNPROCESSABLE_ENTITY),
	(AlreadyReviewed, status.HTTP_409_CONFLICT),
	(RatingLedgerUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
	(RatingLedgerError, status.HTTP_502_BAD_GATEWAY),
)


def get_request_id(request: Request, default: str = "unknown") -> str:
	return getattr(request.state, "request_id", None) or default


def status_for(exc: MarketplaceError) -> int:
	for exc_type, code in _STATUS_BY_ERROR:
		if isinstance(exc, exc_type):
			return code
	return status.HTTP_500_INTERNAL_SERVER_ERROR


def install_error_handlers(app: FastAPI) -> None:
	@app.exception_handler(StarletteHTTPException)
	async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
		rid = get_request_id(request)
		payload = {"detail": exc.detail, "request_id": rid}
		return JSONResponse(status_code=exc.status_code, content=payload, headers=exc.headers)

	@app.exception_handler(RequestValidationError)
	async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
		rid = get_request_id(request)
		payload = {"detail": "validation_error", "errors": exc.errors(), "request_id": rid}
		return JSONResponse(status_code=422, content=jsonable_encoder(payload))

	@app.exception_handler(MarketplaceError)
	async def marketplace_exc_handler(request: Request, exc: MarketplaceError):  # type: ignore[override]
		rid = get_request_id(request)
		status_code = status_for(exc)
		if status_code >= 500:
			logger.warning("request failed code=%s", exc.code, exc_info=exc)
		return JSONResponse(status_code=status_code, content={"detail": exc.code, "request_id": rid})
