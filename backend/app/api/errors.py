"""
例外をLoopBack形式のエラーレスポンスに変換するハンドラ
"""
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.exceptions import (
    RemoteMethodException,
    RequestException,
    SitecheckException,
    exception_to_response,
)
from app.logging_config import logger


def error_response(exception: SitecheckException) -> JSONResponse:
    return JSONResponse(
        status_code=exception.status_code,
        content=jsonable_encoder(exception_to_response(exception)),
    )


async def sitecheck_exception_handler(request: Request, exc: SitecheckException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc} - details: {exc.details}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc}")
    return error_response(exc)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # ルートが存在しない、またはメソッドが無効化されている
    if exc.status_code in (404, 405):
        return error_response(RemoteMethodException(request.method, request.url.path))
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {
            "name": "Error",
            "status": exc.status_code,
            "statusCode": exc.status_code,
            "message": str(exc.detail),
        }},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(RequestException(
        "Invalid request parameters",
        details={"errors": jsonable_encoder(exc.errors())},
    ))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": {
            "name": "Error",
            "status": 500,
            "statusCode": 500,
            "message": "Internal Server Error",
        }},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SitecheckException, sitecheck_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
