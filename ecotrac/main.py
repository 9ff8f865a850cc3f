import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

# Load env from ecotrac/.env
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(package_dir, ".env"))

from ecotrac.core.config import settings, validate_config
from ecotrac.core.logging import configure_logging
from ecotrac.core.middleware.request_id import RequestIdMiddleware
from ecotrac.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from ecotrac.api import challenges, health, users

configure_logging(settings.ENV)
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("ecotrac")
    logger.info("Starting EcoTrac backend...")
    try:
        yield
    finally:
        logging.getLogger("ecotrac").info("Stopping EcoTrac backend...")


app = FastAPI(title="EcoTrac - Backend", version="0.1.0", lifespan=lifespan)

# Middlewares
app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.root_router, tags=["health"])
app.include_router(challenges.router, tags=["challenges"])
app.include_router(users.router, tags=["users"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("ecotrac.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "3000")), reload=False)
