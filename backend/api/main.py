"""
FastAPI application entry point.

Run with: uvicorn api.main:app --reload
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from backend/.env (optional) before other imports that read env
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(env_path)

from api.routes import routes
from services.map_route_renderer import DATA_DIR


# Create app
app = FastAPI(
    title="Trip Route API",
    description="Turns assistant travel answers into renderable routes",
    version="0.1.0",
)

# CORS middleware for the chat frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure properly for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount static files for rendered route maps
DATA_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/static", StaticFiles(directory=str(DATA_DIR)), name="static")

# Include routers
app.include_router(routes.router, prefix="/routes", tags=["routes"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Trip Route API"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
