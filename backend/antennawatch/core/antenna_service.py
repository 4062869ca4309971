"""Antenna queries and the degrade mutation.

Reads go to the Materialize views; the degrade mutation is an ordinary
insert into the write-side store, which then reaches subscribers through
the same tail as any other performance event.
"""

import json
import random
from datetime import datetime, timezone
from typing import List, Optional

import asyncpg

from antennawatch.core.config import settings
from antennawatch.core.exceptions import NotFoundException, StoreUnavailableException
from antennawatch.core.logging import ContextualLogger
from antennawatch.core.logging import logger as default_logger
from antennawatch.core.shared_models import EntityRole
from antennawatch.db.session import get_materialize_context, get_store_context
from antennawatch.platform.tail.cursor import check_identifier
from antennawatch.schemas.antenna import AntennaOut, DegradeAntennaResponse


class AntennaService:
    """Reads antennas and injects degrade events."""

    def __init__(self, logger: Optional[ContextualLogger] = None):
        """Initialize the service.

        Args:
            logger: Optional contextual logger
        """
        self.logger = logger or default_logger.with_context(component="antenna_service")

    async def list_antennas(self) -> List[AntennaOut]:
        """Return every antenna in the antennas view.

        Raises:
            StoreUnavailableException: If Materialize cannot be queried
        """
        view = check_identifier(settings.ANTENNAS_VIEW)
        async with get_materialize_context() as conn:
            try:
                records = await conn.fetch(f"SELECT * FROM {view}")
            except asyncpg.PostgresError as e:
                raise StoreUnavailableException(f"Could not read {view}: {e}") from e

        antennas = []
        for record in records:
            row = dict(record)
            geojson = row.get("geojson")
            if isinstance(geojson, str):
                try:
                    geojson = json.loads(geojson)
                except json.JSONDecodeError:
                    self.logger.warning(f"Antenna {row.get('antenna_id')} has invalid geojson")
                    geojson = None
            performance = row.get("performance")
            antennas.append(
                AntennaOut(
                    antenna_id=str(row["antenna_id"]),
                    geojson=geojson,
                    performance=float(performance) if performance is not None else None,
                    role=EntityRole.HELPER if row.get("helper") else EntityRole.PRIMARY,
                )
            )
        return antennas

    async def degrade_antenna(self, antenna_id: int) -> DegradeAntennaResponse:
        """Write a low-performance event for ``antenna_id``.

        Args:
            antenna_id: Antenna to degrade

        Returns:
            The values written

        Raises:
            NotFoundException: If the antenna does not exist
            StoreUnavailableException: If the write side cannot be reached
        """
        clients_connected = random.randint(1, 100)
        performance = settings.DEGRADED_PERFORMANCE
        updated_at = datetime.now(timezone.utc)

        async with get_store_context() as conn:
            try:
                exists = await conn.fetchval(
                    "SELECT 1 FROM antennas WHERE antenna_id = $1", antenna_id
                )
                if not exists:
                    raise NotFoundException(f"Antenna {antenna_id} not found")

                await conn.execute(
                    "INSERT INTO antennas_performance "
                    "(antenna_id, clients_connected, performance, updated_at) "
                    "VALUES ($1, $2, $3, $4)",
                    antenna_id,
                    clients_connected,
                    performance,
                    updated_at,
                )
            except asyncpg.PostgresError as e:
                raise StoreUnavailableException(f"Could not degrade antenna: {e}") from e

        self.logger.info(
            f"Degraded antenna {antenna_id} to performance {performance}",
            extra={"antenna_id": str(antenna_id)},
        )
        return DegradeAntennaResponse(
            antenna_id=str(antenna_id),
            performance=performance,
            clients_connected=clients_connected,
            updated_at=updated_at,
        )


antenna_service = AntennaService()
