"""Pydantic schemas for the API."""

from .antenna import (
    AntennaOut,
    AntennaSnapshotOut,
    DegradeAntennaResponse,
)

__all__ = [
    "AntennaOut",
    "AntennaSnapshotOut",
    "DegradeAntennaResponse",
]
