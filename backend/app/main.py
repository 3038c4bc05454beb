import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from app.config import CORS_ORIGINS, LOG_LEVEL
from app.api.me import router as me_router
from app.api.posts import router as posts_router
from app.api.users import router as users_router
from app.api.whitelist import router as whitelist_router
from app.api.site import router as site_router
from app.api.upload import router as upload_router
from app.services.errors import AccessError

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Private Blog API",
    description="Backend API for a private, invite-only blog",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register API routers
app.include_router(me_router, prefix="/api")
app.include_router(posts_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(whitelist_router, prefix="/api")
app.include_router(site_router, prefix="/api")
app.include_router(upload_router, prefix="/api")


@app.exception_handler(AccessError)
async def access_error_handler(request: Request, exc: AccessError):
    """Map workflow errors to their HTTP status."""
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=headers,
    )


@app.get(
    "/health",
    tags=["health"],
    summary="Health check endpoint",
    description="Returns the health status of the API",
)
def health_check():
    """Basic health check endpoint to verify the API is running.

    Returns:
        dict: Health status information
    """
    return {
        "status": "healthy",
        "service": "Private Blog API",
    }
