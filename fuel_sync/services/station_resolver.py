"""
Map internal trading points to the identifiers the trading API expects.
"""

import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from ..config import get_config
from ..db.db_reference_models import Network, TradingPoint
from ..exceptions import ExternalIdMissingError, NetworkNotFoundError, TradingPointNotFoundError
from ..schemas.sync_schemas import StationMapping, TradingPointRef
from ..utils.crud_helpers import get_record_by_id, list_records
from ..utils.logger import ContextAwareLogger
from .base_service import SessionManagedService


class StationResolver(SessionManagedService):
    """
    Resolves trading points to (system_id, station_id) pairs.

    Successful lookups are cached per trading point for `cache_ttl`
    seconds. Failures are never cached, so a fixed configuration is picked
    up on the next call.
    """

    def __init__(
        self,
        session: Optional[Session] = None,
        cache_ttl: Optional[float] = None,
        logger: Optional[ContextAwareLogger] = None,
        clock: Callable[[], float] = time.monotonic,
        session_lock: Optional[threading.RLock] = None,
    ):
        super().__init__(session=session, logger=logger, session_lock=session_lock)
        self.cache_ttl = (
            cache_ttl if cache_ttl is not None else get_config().sync.station_cache_ttl_seconds
        )
        self._clock = clock
        self._cache: Dict[str, Tuple[float, StationMapping]] = {}

    def resolve_station(self, trading_point_id: str) -> StationMapping:
        """
        Raises:
            TradingPointNotFoundError: no trading point with this id
            NetworkNotFoundError: the trading point's network is gone
            ExternalIdMissingError: network or station external id is blank
        """
        with self.session_lock:
            cached = self._cache.get(trading_point_id)
            if cached is not None:
                expires, mapping = cached
                if self._clock() < expires:
                    return mapping
                del self._cache[trading_point_id]

            mapping = self._lookup(trading_point_id)
            self._cache[trading_point_id] = (self._clock() + self.cache_ttl, mapping)

        self.logger.debug(
            "Resolved station",
            extra={
                "trading_point_id": trading_point_id,
                "system_id": mapping.system_id,
                "station_id": mapping.station_id,
            },
        )
        return mapping

    def list_active_trading_points(self, network_external_id: str) -> List[TradingPointRef]:
        """
        Active trading points of the network, ordered by name then id.

        Raises:
            NetworkNotFoundError: no network carries this external id (or code)
        """
        with self.session_lock:
            network = (
                self.session.query(Network)
                .filter(
                    or_(
                        Network.external_id == network_external_id,
                        and_(
                            or_(Network.external_id.is_(None), Network.external_id == ""),
                            Network.code == network_external_id,
                        ),
                    )
                )
                .order_by(Network.name, Network.id)
                .first()
            )
            if network is None:
                raise NetworkNotFoundError(
                    f"Network not found: {network_external_id}",
                    network_external_id=network_external_id,
                )

            points = list_records(
                self.session,
                TradingPoint,
                filters={"network_id": network.id, "is_active": True},
                order_by=["name", "id"],
            )
            return [TradingPointRef(id=tp.id, name=tp.name) for tp in points]

    def clear_cache(self) -> None:
        with self.session_lock:
            self._cache.clear()

    def close(self) -> None:
        self.clear_cache()
        super().close()

    def _lookup(self, trading_point_id: str) -> StationMapping:
        trading_point = get_record_by_id(self.session, TradingPoint, trading_point_id)
        if trading_point is None:
            raise TradingPointNotFoundError(trading_point_id)

        network = get_record_by_id(self.session, Network, trading_point.network_id)
        if network is None:
            raise NetworkNotFoundError(
                f"Network {trading_point.network_id} not found for trading point {trading_point_id}",
                trading_point_id=trading_point_id,
                network_id=trading_point.network_id,
            )

        system_id = network.system_id
        if not system_id:
            raise ExternalIdMissingError("system_id", trading_point_id)

        station_id = (trading_point.external_id or "").strip()
        if not station_id:
            raise ExternalIdMissingError("station_id", trading_point_id)

        return StationMapping(
            trading_point_id=trading_point.id,
            trading_point_name=trading_point.name,
            system_id=system_id,
            station_id=station_id,
        )
