"""
Schemas exchanged with callers of the synchronization engine.

None of these are persisted; a SyncRunResult lives only as long as the
caller keeps it.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class SyncOptions(BaseModel):
    """Parameters of one synchronization run."""

    station_id: Optional[str] = Field(
        None, description="Internal trading point id; all active stations when omitted"
    )
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    force_sync: bool = Field(default=False, description="Bypass dedup and overwrite on conflict")


class StationMapping(BaseModel):
    """Internal trading point resolved to the upstream identifiers."""

    trading_point_id: str
    trading_point_name: str
    system_id: str = Field(..., description="Upstream network identifier")
    station_id: str = Field(..., description="Upstream station identifier")


class TradingPointRef(BaseModel):
    """Active trading point selected for a network-wide run."""

    id: str
    name: str


class SyncError(BaseModel):
    record_id: Optional[str] = None
    trading_point_id: Optional[str] = None
    message: str


class StationSyncResult(BaseModel):
    trading_point_id: str
    trading_point_name: Optional[str] = None
    records_fetched: int = 0
    records_synced: int = 0
    records_skipped: int = 0
    errors: List[SyncError] = Field(default_factory=list)


class SyncRunResult(BaseModel):
    """Aggregated outcome of one run across all stations."""

    success: bool = True
    stations_processed: int = 0
    records_fetched: int = 0
    records_synced: int = 0
    records_skipped: int = 0
    errors: List[SyncError] = Field(default_factory=list)
    station_results: List[StationSyncResult] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def add_station(self, station: StationSyncResult) -> None:
        self.station_results.append(station)
        self.stations_processed += 1
        self.records_fetched += station.records_fetched
        self.records_synced += station.records_synced
        self.records_skipped += station.records_skipped
        self.errors.extend(station.errors)


class SyncStatus(BaseModel):
    is_running: bool = False
    last_sync_time: Optional[datetime] = None
    last_result: Optional[SyncRunResult] = None
