from contextlib import asynccontextmanager
from typing import Callable
import time

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis
from redis.exceptions import RedisError
from starlette.exceptions import HTTPException as StarletteHTTPException

from markbook.core.config.logging_config import setup_logging
from markbook.core.config.settings import get_settings
from markbook.db.base import Base
from markbook.db.init_db import init_db
from markbook.db.session import SessionLocal, engine
from markbook.routers import activities, answers, auth, courses, health, questions, units, users
from markbook.services.workflow import WorkflowError
from markbook.utils.responses import send_response

# Setup logging
logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    app.state.redis = None
    # Initialize Redis if URL is configured
    if settings.REDIS_URL:
        try:
            redis = Redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
            await redis.ping()
            app.state.redis = redis
            logger.info("Redis connection established")
        except (RedisError, OSError) as e:
            logger.error(f"Failed to connect to Redis: {str(e)}")

    # Initialize database
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        init_db(db)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}")
    finally:
        db.close()

    yield

    if app.state.redis:
        await app.state.redis.close()
        logger.info("Redis connection closed")


# Initialize FastAPI app
app = FastAPI(
    title=get_settings().PROJECT_NAME,
    openapi_url=f"{get_settings().API_V1_PREFIX}/openapi.json",
    docs_url=f"{get_settings().API_V1_PREFIX}/docs",
    redoc_url=f"{get_settings().API_V1_PREFIX}/redoc",
    lifespan=lifespan,
)


# Middleware for request logging
@app.middleware("http")
async def log_requests(request: Request, call_next: Callable):
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time
    logger.info(
        f"Method: {request.method} Path: {request.url.path} "
        f"Status: {response.status_code} Duration: {duration:.2f}s"
    )
    return response


# Rate limiting middleware
@app.middleware("http")
async def rate_limit(request: Request, call_next: Callable):
    redis = getattr(request.app.state, "redis", None)
    if redis and request.client:
        key = f"rate_limit:{request.client.host}"
        requests = await redis.incr(key)

        if requests == 1:
            await redis.expire(key, 60)  # Reset after 60 seconds

        if requests > get_settings().RATE_LIMIT_PER_MINUTE:
            return send_response("Too many requests", status.HTTP_429_TOO_MANY_REQUESTS)

    return await call_next(request)


# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers with prefix
api_prefix = get_settings().API_V1_PREFIX
app.include_router(auth.router, prefix=api_prefix)
app.include_router(users.router, prefix=api_prefix)
app.include_router(courses.router, prefix=api_prefix)
app.include_router(units.router, prefix=api_prefix)
app.include_router(questions.router, prefix=api_prefix)
app.include_router(activities.router, prefix=api_prefix)
app.include_router(answers.router, prefix=api_prefix)
app.include_router(health.router)


# Exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500:
        logger.error(f"HTTP Exception: {exc.detail}")
    else:
        logger.warning(f"HTTP Exception {exc.status_code} on {request.url.path}: {exc.detail}")
    content = exc.detail if isinstance(exc.detail, dict) else {"message": exc.detail}
    response = send_response(content, exc.status_code)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    fields = []
    for error in errors:
        name = str(error["loc"][-1]) if error.get("loc") else "body"
        if name not in fields:
            fields.append(name)
    if all(error.get("type") == "missing" for error in errors):
        message = f"Missing fields: {', '.join(fields)}"
    else:
        message = f"Invalid fields: {', '.join(fields)}"
    logger.warning(f"Validation failed on {request.url.path}: {message}")
    return send_response({"message": message, "fields": fields}, status.HTTP_400_BAD_REQUEST)


@app.exception_handler(WorkflowError)
async def workflow_exception_handler(request: Request, exc: WorkflowError):
    logger.warning(f"Workflow violation on {request.url.path}: {str(exc)}")
    return send_response(
        {"message": str(exc), "currentStatus": exc.current.value},
        status.HTTP_409_CONFLICT,
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled Exception: {str(exc)}", exc_info=True)
    return send_response("Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR)
