import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from patentflow.api.v1.api import api_router
from patentflow.api.views import router as web_router
from patentflow.core.config import settings
from patentflow.core.errors import PatentFlowError, StoreUnavailable
from patentflow.core.logging import configure_logging
from patentflow.db.session import init_db

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("%s %s started", settings.PROJECT_NAME, settings.VERSION)
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

# Set up CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PatentFlowError)
async def patentflow_error_handler(request: Request, exc: PatentFlowError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    # Store errors that escaped a guarded block
    logger.error("Unhandled store error on %s %s: %s", request.method, request.url.path, exc,
                 extra={"method": request.method, "path": request.url.path})
    error = StoreUnavailable()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# Include API routes separately
app.include_router(api_router, prefix=settings.API_V1_STR)

# Include Web (Template) routes
app.include_router(web_router)
