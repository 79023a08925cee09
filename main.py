import logging
import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.exceptions import GradingError
from app.core.logging import configure_logging
from app.core.scheduler import start_scheduler, stop_scheduler
from app.endpoints import tests, attempts, grading, analytics
from app.jobs.grading import build_grading_queue
from app.middleware.exceptions import global_exception_handler, validation_exception_handler, grading_exception_handler
from app.middleware.logging import RequestLoggingMiddleware

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(RequestLoggingMiddleware)

app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(StarletteHTTPException, global_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(GradingError, grading_exception_handler)

app.include_router(tests.router, prefix="/tests", tags=["Tests"])
app.include_router(attempts.router, prefix="/attempts", tags=["Attempts"])
app.include_router(grading.router, prefix="/grading", tags=["Grading"])
app.include_router(analytics.router, prefix="/analytics", tags=["Analytics"])

@app.on_event("startup")
async def startup_event():
    if os.getenv("TESTING") != "true":
        configure_logging()

    queue = build_grading_queue()
    app.state.grading_queue = queue
    start_scheduler(queue)
    logger.info(f"{settings.PROJECT_NAME} started (grading mode: {settings.GRADING_MODE})")

@app.on_event("shutdown")
async def shutdown_event():
    stop_scheduler()
    queue = getattr(app.state, "grading_queue", None)
    if queue is not None:
        queue.close()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
