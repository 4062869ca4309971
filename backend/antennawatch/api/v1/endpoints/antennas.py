"""Antenna endpoints.

- ``GET /antennas``: current antennas from the view
- ``POST /antennas/{antenna_id}/degrade``: administrative degrade mutation
- ``GET /antennas/updates``: Server-Sent Events with one snapshot per applied batch
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import APIRouter, Depends, Path
from fastapi.responses import StreamingResponse

from antennawatch.api import deps
from antennawatch.core.antenna_service import AntennaService
from antennawatch.core.config import settings
from antennawatch.core.feed_service import AntennaFeedService
from antennawatch.core.logging import logger
from antennawatch.platform.tail.reconciler import EntitySnapshot
from antennawatch.schemas import AntennaOut, AntennaSnapshotOut, DegradeAntennaResponse

router = APIRouter()

_END = object()


def _event(payload: Dict[str, Any]) -> str:
    payload.setdefault("ts", datetime.now(timezone.utc).isoformat())
    return f"data: {json.dumps(payload, default=str)}\n\n"


@router.get("", response_model=List[AntennaOut])
async def list_antennas(
    service: AntennaService = Depends(deps.get_antenna_service),
) -> List[AntennaOut]:
    """List current antennas."""
    return await service.list_antennas()


@router.post("/{antenna_id}/degrade", response_model=DegradeAntennaResponse)
async def degrade_antenna(
    antenna_id: int = Path(..., description="Antenna to degrade"),
    service: AntennaService = Depends(deps.get_antenna_service),
) -> DegradeAntennaResponse:
    """Inject a low-performance event for one antenna."""
    return await service.degrade_antenna(antenna_id)


@router.get("/updates")
async def antenna_updates(
    feed: AntennaFeedService = Depends(deps.get_feed_service),
) -> StreamingResponse:
    """Server-Sent Events stream of antenna snapshots.

    Emits ``connected`` once, ``snapshot`` after every applied batch,
    ``heartbeat`` while idle and ``error`` if the feed fails. The tail is
    closed when the client disconnects.
    """
    heartbeat_interval = settings.SSE_HEARTBEAT_SECONDS

    async def event_stream() -> AsyncIterator[str]:
        snapshots = feed.stream_snapshots()
        pending: Optional[asyncio.Task] = None
        try:
            yield _event({"type": "connected"})
            while True:
                if pending is None:
                    pending = asyncio.create_task(_next_snapshot(snapshots))
                done, _ = await asyncio.wait({pending}, timeout=heartbeat_interval)
                if not done:
                    yield _event({"type": "heartbeat"})
                    continue

                snapshot = pending.result()
                pending = None
                if snapshot is _END:
                    yield _event({"type": "done"})
                    break
                yield _event(_snapshot_event(snapshot))

        except asyncio.CancelledError:
            logger.info("[AntennaUpdates] Client disconnected")
            raise
        except Exception as e:  # noqa: BLE001 - report to stream
            logger.error(f"[AntennaUpdates] Feed failed: {e}")
            yield _event({"type": "error", "message": str(e)})
        finally:
            if pending is not None and not pending.done():
                pending.cancel()
                try:
                    await pending
                except asyncio.CancelledError:
                    pass
            await snapshots.aclose()

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache, no-transform",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


async def _next_snapshot(snapshots: AsyncIterator[EntitySnapshot]) -> object:
    try:
        return await snapshots.__anext__()
    except StopAsyncIteration:
        return _END


def _snapshot_event(snapshot: EntitySnapshot) -> Dict[str, Any]:
    return {
        "type": "snapshot",
        "snapshot": AntennaSnapshotOut.from_snapshot(snapshot).model_dump(mode="json"),
    }
