"""API router configuration."""

from fastapi import APIRouter

from src.api.endpoints import templates, cards

# Create main API router
api_router = APIRouter()

# Card templates - design, versioning and activation
api_router.include_router(
    templates.router,
    prefix="/templates",
    tags=["Card Templates"],
    responses={
        400: {"description": "Invalid scope or data tags"},
        404: {"description": "Template not found"},
        409: {"description": "Version conflict or template is active"},
        422: {"description": "Validation Error"},
    }
)

# Cards - single, data and bulk generation
api_router.include_router(
    cards.router,
    prefix="/cards",
    tags=["ID Cards"],
    responses={
        400: {"description": "No active session or invalid request"},
        404: {"description": "Entity not found or no active template for its scope"},
        422: {"description": "Validation Error or no card could be generated"},
    }
)
