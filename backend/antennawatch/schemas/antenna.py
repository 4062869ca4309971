"""Antenna schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from antennawatch.core.shared_models import EntityRole, PerformanceClass
from antennawatch.platform.tail.reconciler import EntitySnapshot, EntityState


class AntennaOut(BaseModel):
    """One antenna as served to clients."""

    model_config = ConfigDict(use_enum_values=True)

    antenna_id: str = Field(..., description="Antenna identifier")
    geojson: Optional[Dict[str, Any]] = Field(None, description="GeoJSON feature of the antenna")
    performance: Optional[float] = Field(None, description="Average performance")
    performance_class: Optional[PerformanceClass] = Field(
        None, description="Health bucket derived from performance"
    )
    role: EntityRole = Field(EntityRole.PRIMARY, description="Primary or helper antenna")
    miss_count: int = Field(0, description="Confirming retractions seen (helpers only)")
    last_update_timestamp: Optional[int] = Field(
        None, description="Logical timestamp of the last applied change"
    )

    @classmethod
    def from_state(cls, state: EntityState) -> "AntennaOut":
        """Build the schema from a reconciled entity state."""
        geojson = state.attributes.get("geojson")
        return cls(
            antenna_id=state.key,
            geojson=dict(geojson) if isinstance(geojson, dict) else None,
            performance=state.performance,
            performance_class=state.performance_class,
            role=state.role,
            miss_count=getattr(state, "miss_count", 0),
            last_update_timestamp=state.last_update_timestamp,
        )


class AntennaSnapshotOut(BaseModel):
    """Full current state pushed to subscribers after every applied batch."""

    version: int = Field(..., description="Number of batches applied so far")
    progress_timestamp: Optional[int] = Field(
        None, description="Progress timestamp of the last applied batch"
    )
    high: List[AntennaOut] = Field(default_factory=list, description="Healthy antennas")
    medium: List[AntennaOut] = Field(default_factory=list, description="Semi-healthy antennas")
    low: List[AntennaOut] = Field(default_factory=list, description="Unhealthy antennas")
    helpers: List[AntennaOut] = Field(default_factory=list, description="Helper antennas")

    @classmethod
    def from_snapshot(cls, snapshot: EntitySnapshot) -> "AntennaSnapshotOut":
        """Serialize a reconciler snapshot."""
        return cls(
            version=snapshot.version,
            progress_timestamp=snapshot.progress_timestamp,
            high=[AntennaOut.from_state(s) for s in snapshot.in_class(PerformanceClass.HIGH)],
            medium=[AntennaOut.from_state(s) for s in snapshot.in_class(PerformanceClass.MEDIUM)],
            low=[AntennaOut.from_state(s) for s in snapshot.in_class(PerformanceClass.LOW)],
            helpers=[AntennaOut.from_state(s) for s in snapshot.helpers.values()],
        )


class DegradeAntennaResponse(BaseModel):
    """Result of the degrade mutation."""

    antenna_id: str
    performance: float
    clients_connected: int
    updated_at: datetime
