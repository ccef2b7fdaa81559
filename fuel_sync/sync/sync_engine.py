"""
Transaction synchronization engine.

A run walks the selected stations one after another:

    IDLE -> FETCHING -> TRANSFORMING -> DEDUPING -> PERSISTING -> DONE

Any step may jump straight to DONE for the current station; its failure
becomes an entry in the run result and the next station proceeds. Only
misuse (a second concurrent run) and integration-wide configuration gaps
raise to the caller.

`start_auto_sync` repeats runs on a background schedule until stopped.
"""

import threading
import time
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Set, Tuple

import requests
from sqlalchemy.orm import Session

from ..config import SyncConfig, get_config
from ..constants import SyncState
from ..context.operation_context import operation
from ..db.db_base import as_utc, utc_now
from ..exceptions import (
    BaseError,
    ConfigurationError,
    RepositoryError,
    StationResolutionError,
    SyncAlreadyRunningError,
    ValidationError,
)
from ..schemas.sync_schemas import (
    StationSyncResult,
    SyncError,
    SyncOptions,
    SyncRunResult,
    SyncStatus,
    TradingPointRef,
)
from ..schemas.transaction_schemas import OperationRecord
from ..services.destination_service import DestinationConfigService
from ..services.operation_store import OperationStore
from ..services.station_resolver import StationResolver
from ..services.token_service import TokenLifecycleManager
from ..trading.trading_api import TradingApiClient
from ..trading.transport import HttpTransport
from ..utils.logger import get_logger
from ..utils.periodic import PeriodicTask
from .transform import extract_transactions, transform_transaction


def _record_id(raw) -> Optional[str]:
    if isinstance(raw, dict):
        for key in ("id", "transaction_id", "trans_id"):
            if raw.get(key) not in (None, ""):
                return str(raw[key])
    return None


class TransactionSyncEngine:
    """Pulls upstream transactions and merges them into the operations store."""

    def __init__(
        self,
        trading_api: TradingApiClient,
        resolver: StationResolver,
        store: OperationStore,
        config: Optional[SyncConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.trading_api = trading_api
        self.resolver = resolver
        self.store = store
        self.config = config or get_config().sync
        self._sleep = sleep
        self.logger = get_logger()

        self._guard = threading.Lock()
        self._running = False
        self._state = SyncState.IDLE
        self._last_sync_time: Optional[datetime] = None
        self._last_result: Optional[SyncRunResult] = None
        self._auto_sync: Optional[PeriodicTask] = None

    @classmethod
    def from_session(
        cls,
        session: Session,
        http_session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "TransactionSyncEngine":
        """
        Wire the full stack on top of one database session.

        All services share one session lock, so the token manager may be
        called from other threads while a run is persisting.
        """
        session_lock = threading.RLock()
        destinations = DestinationConfigService(session=session, session_lock=session_lock)
        tokens = TokenLifecycleManager(destinations, http_session=http_session)
        transport = HttpTransport(destinations, tokens, http_session=http_session, sleep=sleep)
        return cls(
            trading_api=TradingApiClient(transport),
            resolver=StationResolver(session=session, session_lock=session_lock),
            store=OperationStore(session=session, session_lock=session_lock),
            sleep=sleep,
        )

    @property
    def state(self) -> SyncState:
        return self._state

    @operation("sync_engine.sync_transactions")
    def sync_transactions(self, options: Optional[SyncOptions] = None) -> SyncRunResult:
        """
        Run one synchronization.

        Raises:
            SyncAlreadyRunningError: another run is in progress on this engine
            ValidationError: start_date is after end_date
            ConfigurationError: the trading API destination is not usable at all
        """
        options = options or SyncOptions()
        start, end = self._resolve_window(options)

        with self._guard:
            if self._running:
                raise SyncAlreadyRunningError()
            self._running = True

        try:
            return self._run(options, start, end)
        finally:
            self._state = SyncState.IDLE
            with self._guard:
                self._running = False

    def sync_station_transactions(self, trading_point_id: str, days: int = 7) -> SyncRunResult:
        end = utc_now()
        return self.sync_transactions(
            SyncOptions(
                station_id=trading_point_id, start_date=end - timedelta(days=days), end_date=end
            )
        )

    def get_sync_status(self) -> SyncStatus:
        with self._guard:
            return SyncStatus(
                is_running=self._running,
                last_sync_time=self._last_sync_time,
                last_result=self._last_result,
            )

    def start_auto_sync(
        self, interval_seconds: Optional[float] = None, options: Optional[SyncOptions] = None
    ) -> Callable[[], None]:
        """
        Run a sync now and then every interval on a background thread.

        Returns a callable that stops the schedule. If auto-sync is already
        running, its schedule is kept and the same stop callable is returned.
        """
        with self._guard:
            if self._auto_sync is None:
                self._auto_sync = PeriodicTask(
                    "auto-sync",
                    interval_seconds or self.config.auto_sync_interval_seconds,
                    lambda: self._scheduled_sync(options),
                    run_immediately=True,
                )
            task = self._auto_sync
        task.start()
        return self.stop_auto_sync

    def stop_auto_sync(self) -> None:
        with self._guard:
            task, self._auto_sync = self._auto_sync, None
        if task is not None:
            task.stop()

    def close(self) -> None:
        self.stop_auto_sync()
        self.resolver.clear_cache()

    def _scheduled_sync(self, options: Optional[SyncOptions]) -> None:
        try:
            self.sync_transactions(options)
        except SyncAlreadyRunningError:
            self.logger.info("Scheduled synchronization skipped, a run is in progress")

    def _resolve_window(self, options: SyncOptions) -> Tuple[datetime, datetime]:
        window = timedelta(days=self.config.default_window_days)
        end = as_utc(options.end_date) if options.end_date else utc_now()
        start = as_utc(options.start_date) if options.start_date else end - window
        if start > end:
            raise ValidationError(
                "start_date must not be after end_date",
                field="start_date",
                start_date=start.isoformat(),
                end_date=end.isoformat(),
            )
        return start, end

    def _run(self, options: SyncOptions, start: datetime, end: datetime) -> SyncRunResult:
        result = SyncRunResult(started_at=utc_now())

        try:
            stations = self._select_stations(options)
        except StationResolutionError as e:
            result.errors.append(SyncError(message=e.message))
            stations = []

        self.logger.info(
            "Synchronization started",
            extra={
                "stations": len(stations),
                "start": start.isoformat(),
                "end": end.isoformat(),
                "force_sync": options.force_sync,
            },
        )

        for index, station in enumerate(stations):
            if index > 0 and self.config.station_pause_seconds:
                self._sleep(self.config.station_pause_seconds)
            result.add_station(self._sync_station(station, start, end, options.force_sync))

        self._state = SyncState.DONE
        result.finished_at = utc_now()
        result.success = result.records_synced > 0 or not result.errors

        with self._guard:
            self._last_sync_time = result.finished_at
            self._last_result = result

        self.logger.info(
            "Synchronization finished",
            extra={
                "success": result.success,
                "stations_processed": result.stations_processed,
                "records_fetched": result.records_fetched,
                "records_synced": result.records_synced,
                "records_skipped": result.records_skipped,
                "errors": len(result.errors),
            },
        )
        return result

    def _select_stations(self, options: SyncOptions) -> List[TradingPointRef]:
        if options.station_id:
            return [TradingPointRef(id=options.station_id, name="")]
        return self.resolver.list_active_trading_points(self.config.network_external_id)

    def _sync_station(
        self, station: TradingPointRef, start: datetime, end: datetime, force_sync: bool
    ) -> StationSyncResult:
        result = StationSyncResult(
            trading_point_id=station.id, trading_point_name=station.name or None
        )

        def fail(message: str, record_id: Optional[str] = None) -> None:
            result.errors.append(
                SyncError(record_id=record_id, trading_point_id=station.id, message=message)
            )

        try:
            mapping = self.resolver.resolve_station(station.id)
        except StationResolutionError as e:
            fail(e.message)
            return result
        result.trading_point_name = mapping.trading_point_name

        self._state = SyncState.FETCHING
        try:
            response = self.trading_api.get_transactions(
                mapping.system_id, mapping.station_id, start, end
            )
        except ConfigurationError:
            raise
        except BaseError as e:
            fail(f"Failed to fetch transactions: {e.message}")
            return result

        if not response.success:
            fail(f"Failed to fetch transactions: {response.error}")
            return result

        raw_items = extract_transactions(response.data)
        result.records_fetched = len(raw_items)

        self._state = SyncState.TRANSFORMING
        records: List[OperationRecord] = []
        for raw in raw_items:
            try:
                records.append(transform_transaction(raw, mapping))
            except (TypeError, ValueError) as e:
                fail(f"Failed to transform transaction: {str(e)}", record_id=_record_id(raw))

        self._state = SyncState.DEDUPING
        # Forced runs overwrite stored rows but still collapse repeats within the fetch
        if force_sync:
            known_ids: Set[str] = set()
        else:
            try:
                known_ids = self.store.load_existing_ids(mapping.trading_point_id)
            except RepositoryError as e:
                fail(f"Failed to load stored transaction ids: {e.message}")
                return result

        pending = []
        for record in records:
            key = record.external_transaction_id
            if key is not None and key in known_ids:
                result.records_skipped += 1
                continue
            if key is not None:
                known_ids.add(key)
            pending.append(record)

        self._state = SyncState.PERSISTING
        batch_size = self.config.batch_size
        for offset in range(0, len(pending), batch_size):
            if offset and self.config.batch_pause_seconds:
                self._sleep(self.config.batch_pause_seconds)
            self._persist_batch(pending[offset : offset + batch_size], force_sync, result, fail)

        self.logger.info(
            "Station synchronized",
            extra={
                "trading_point_id": station.id,
                "records_fetched": result.records_fetched,
                "records_synced": result.records_synced,
                "records_skipped": result.records_skipped,
                "errors": len(result.errors),
            },
        )
        return result

    def _persist_batch(
        self,
        batch: List[OperationRecord],
        force_sync: bool,
        result: StationSyncResult,
        fail: Callable[..., None],
    ) -> None:
        try:
            written = self.store.upsert_batch(batch, overwrite=force_sync)
        except RepositoryError as e:
            self.logger.warning(
                "Batch upsert failed, inserting records one by one",
                extra={
                    "trading_point_id": result.trading_point_id,
                    "batch_size": len(batch),
                    "error": e.message,
                },
            )
        else:
            result.records_synced += written
            result.records_skipped += len(batch) - written
            return

        for record in batch:
            try:
                if self.store.insert_one(record, overwrite=force_sync):
                    result.records_synced += 1
                else:
                    result.records_skipped += 1
            except RepositoryError as e:
                fail(
                    f"Failed to save transaction: {e.message}",
                    record_id=record.external_transaction_id,
                )
