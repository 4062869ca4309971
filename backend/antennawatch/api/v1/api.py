"""API v1 router."""

from fastapi import APIRouter

from antennawatch.api.v1.endpoints import antennas

api_router = APIRouter()
api_router.include_router(antennas.router, prefix="/antennas", tags=["antennas"])
