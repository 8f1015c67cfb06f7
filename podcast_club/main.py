"""Podcast Club API - Main Application"""

import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from podcast_club.config import settings, validate_production_settings
from podcast_club.errors import ClubError
from podcast_club.routes import auth, carveouts, codes, imports, meetings, members, podcasts
from podcast_club.services.database import db

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting Podcast Club API...")
    db.initialize()
    if settings.is_production:
        for problem in validate_production_settings(settings):
            logger.warning(f"Configuration: {problem}")
    yield
    logger.info("Shutting down Podcast Club API...")
    db.close()


app = FastAPI(
    title=settings.app_name,
    description="Podcast club: members, podcast rankings, meetings and carve outs",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(ClubError)
async def club_error_handler(request: Request, exc: ClubError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are plain 400s with the first problem spelled out"""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request."
    return JSONResponse(status_code=400, content={"message": message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"message": "Internal server error"}
    )


# Include routers
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(members.router, prefix="/members", tags=["Members"])
app.include_router(codes.join_codes_router, prefix="/join-codes", tags=["Codes"])
app.include_router(codes.claim_codes_router, prefix="/account-claim-codes", tags=["Codes"])
app.include_router(codes.reset_codes_router, prefix="/password-reset-codes", tags=["Codes"])
app.include_router(podcasts.router, prefix="/podcasts", tags=["Podcasts"])
app.include_router(meetings.router, prefix="/meetings", tags=["Meetings"])
app.include_router(carveouts.router, prefix="/carveouts", tags=["Carve Outs"])
app.include_router(imports.router, prefix="/imports", tags=["Imports"])


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "podcast-club-api",
        "version": "0.1.0"
    }


if __name__ == "__main__":
    port = int(sys.argv[1]) if len(sys.argv) > 1 else 8000
    uvicorn.run(app, host="0.0.0.0", port=port)
