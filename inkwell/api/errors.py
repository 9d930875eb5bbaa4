"""Global error handlers ensuring request_id is included in JSON responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from inkwell.domain.errors import DomainError
from inkwell.obs import logging as obs_logging

logger = logging.getLogger(__name__)


def get_request_id(request: Request, default: str = "unknown") -> str:
	return obs_logging.current_request_id() or getattr(request.state, "request_id", None) or default


def install_error_handlers(app: FastAPI) -> None:
	@app.exception_handler(DomainError)
	async def domain_exc_handler(request: Request, exc: DomainError):
		if exc.status_code >= 500:
			logger.warning("domain_error", extra={"reason": exc.reason, "status": exc.status_code})
		payload = {"detail": exc.reason, "request_id": get_request_id(request)}
		return JSONResponse(status_code=exc.status_code, content=payload)

	@app.exception_handler(StarletteHTTPException)
	async def http_exc_handler(request: Request, exc: StarletteHTTPException):
		payload = {"detail": exc.detail, "request_id": get_request_id(request)}
		return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

	@app.exception_handler(RequestValidationError)
	async def validation_exc_handler(request: Request, exc: RequestValidationError):
		payload = {
			"detail": "validation_error",
			"errors": jsonable_encoder(exc.errors()),
			"request_id": get_request_id(request),
		}
		return JSONResponse(status_code=422, content=payload)
