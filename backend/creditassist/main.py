from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from creditassist.core.config import settings
from creditassist.core.logging import setup_logging
from creditassist.core.app_state import build_app_state, shutdown_app_state
from creditassist.core.exceptions import (
    CreditAssistError,
    domain_exception_handler,
    global_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)

# Setup Logging
setup_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifecycle manager for the application.
    Builds the repository, stores, model client and services exactly once.
    """
    logger.info("startup", project=settings.PROJECT_NAME, storage_backend=settings.STORAGE_BACKEND)
    app.state.services = await build_app_state(settings)
    yield
    await shutdown_app_state(app.state.services)
    logger.info("shutdown")

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description="Credit-repair support chat and document analysis service",
    lifespan=lifespan,
    docs_url=f"{settings.API_V1_STR}/docs",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
)

# Middleware: CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Exception Handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(CreditAssistError, domain_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

# Health Check
@app.get("/health", tags=["system"])
async def health_check():
    """
    Public health check endpoint for load balancers.
    """
    return {"status": "ok", "environment": settings.ENVIRONMENT}


from creditassist.api.v1.public import chat as public_chat, documents as public_documents
from creditassist.api.v1.admin import auth as admin_auth, chat as admin_chat, documents as admin_documents

app.include_router(public_chat.router, prefix=f"{settings.API_V1_STR}/public/chat", tags=["chat"])
app.include_router(public_documents.router, prefix=f"{settings.API_V1_STR}/public/documents", tags=["documents"])
app.include_router(admin_auth.router, prefix=f"{settings.API_V1_STR}/admin/auth", tags=["admin-auth"])
app.include_router(admin_chat.router, prefix=f"{settings.API_V1_STR}/admin/chat", tags=["admin-chat"])
app.include_router(admin_documents.router, prefix=f"{settings.API_V1_STR}/admin/documents", tags=["admin-documents"])

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("creditassist.main:app", host="0.0.0.0", port=8000, reload=True)
