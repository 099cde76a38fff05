from fastapi import FastAPI
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
import os
from dotenv import load_dotenv #for .env files
import logging
import uvicorn
from fastapi.responses import JSONResponse # payload returned by a web service from a request.
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import OperationalError

from api import analytics, applications, companies # importing routers
from services.errors import (
    ConcurrentModification, Conflict, InvalidArgument, LifecycleError, NotFound,
)

load_dotenv()

logger = logging.getLogger("uvicorn.error")
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())

app = FastAPI(title="Application Tracker")

frontend_url = os.getenv('FRONTEND_URL', "http://localhost:3000")
logger.info(f"Allowed frontend URL: {frontend_url}")
origins = [frontend_url]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],  # Allow all HTTP methods (GET, POST, etc..)
    allow_headers=["*"],
)

ERROR_STATUS = {
    NotFound: 404,
    Conflict: 409,
    ConcurrentModification: 409,
    InvalidArgument: 400,
}


def _json(status_code: int, content: dict) -> JSONResponse:
    response = JSONResponse(status_code=status_code, content=content)
    #Manually add CORS headers
    response.headers["Access-Control-Allow-Origin"] = frontend_url
    return response


@app.exception_handler(LifecycleError)
async def lifecycle_handler(request: Request, exc: LifecycleError):
    status_code = ERROR_STATUS.get(type(exc), 400)
    if status_code >= 409:
        logger.warning(f"{request.method} {request.url.path}: {exc.message}")
    return _json(status_code, exc.detail())


@app.exception_handler(OperationalError)
async def store_unavailable_handler(request: Request, exc: OperationalError):
    # timeouts and dropped connections, the caller may retry with backoff
    logger.error(f"Store error on {request.method} {request.url.path}: {exc}")
    return _json(503, {"detail": "Storage temporarily unavailable", "error": "store_unavailable", "retryable": True})


@app.exception_handler(Exception)
async def global_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error: {exc}")
    return _json(500, {"detail": "An unexpected error occured"})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info(f'Validation Error: {exc}')
    return _json(422, jsonable_encoder({"detail": exc.errors(), "body": exc.body}))


#Include routers from separate modules. analytics first so its fixed paths win over /{application_id}
app.include_router(analytics.router)
app.include_router(applications.router)
app.include_router(companies.router)


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))
    host = os.environ.get("HOST", "localhost")
    uvicorn.run("main:app", host=host, port=port, reload=True)
