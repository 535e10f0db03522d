"""Observability package bootstrap."""

from __future__ import annotations

from fastapi import FastAPI

from marketplace.obs import logging as obs_logging
from marketplace.obs import middleware
from marketplace.settings import settings

_initialised = False


def init(app: FastAPI) -> None:
	global _initialised
	if _initialised:
		return
	# Request ids are needed by the error handlers even when observability is off
	middleware.install(app, enabled=settings.obs_enabled)
	if settings.obs_enabled:
		obs_logging.configure_logging()
	_initialised = True


__all__ = ["init"]
