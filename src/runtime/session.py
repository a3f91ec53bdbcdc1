"""
Detection session: wires a heading source to the swivel engine.

The session owns everything one operator run needs (engine, normalizer,
sensor subscription, persistence slots, keep-awake lock) and projects a
display-only StatusSnapshot after every state change. All mutation happens
on one asyncio event loop; the only suspension points are the permission
request and the fresh-heading read used for calibration.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import replace
from typing import Callable, List, Optional

from algorithms.swivel import DegenerateCalibrationError, HeadingNormalizer, SwivelEngine
from models.config import DEBOUNCE_MS_RANGE, TOLERANCE_DEG_RANGE, Config, DetectionConfig
from models.count_event import (
    KIND_MANUAL_DECREMENT,
    KIND_MANUAL_INCREMENT,
    KIND_RESET,
    CountEvent,
)
from models.orientation import OrientationSample
from models.status import SessionStatus, StatusSnapshot
from observation.base import (
    CalibrationTimeoutError,
    HeadingSource,
    PermissionDeniedError,
    Subscription,
)
from ops.keep_awake import KeepAwake
from storage.database import (
    KEY_COUNTER,
    KEY_DEBOUNCE,
    KEY_DESTINATION,
    KEY_ORIGIN,
    KEY_TOLERANCE,
    Database,
    waypoint_key,
)

DEFAULT_CALIBRATION_TIMEOUT_MS = 2000

# Where observation times come from; fixed by the first sample of a session
TIME_BASE_SAMPLE = "sample"
TIME_BASE_CLOCK = "clock"

MSG_PERMISSION_DENIED = "Permission denied. Tap Retry to try again or reload to re-prompt."
MSG_PERMISSION_REQUIRED = "Permission required to read heading"
MSG_NO_SENSOR_DATA = "No sensor data. Move phone or tap Start"
MSG_PERMISSION_GRANTED = "Permissions granted. You can Start now or continue."
MSG_STILL_DENIED = "Still denied. You may need to reload and allow access."

StatusListener = Callable[[StatusSnapshot], None]


class DetectionSession:
    """
    One operator session around a SwivelEngine.

    Starting and stopping are idempotent. Calibration actions read one fresh
    sample from the source, racing it against calibration_timeout_ms; on
    timeout nothing changes and CalibrationTimeoutError is raised.
    """

    def __init__(
        self,
        engine: SwivelEngine,
        source: HeadingSource,
        db: Optional[Database] = None,
        keep_awake: Optional[KeepAwake] = None,
        calibration_timeout_ms: int = DEFAULT_CALIBRATION_TIMEOUT_MS,
        auto_start: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._engine = engine
        self._source = source
        self._db = db
        self._keep_awake = keep_awake or KeepAwake(enabled=False)
        self._calibration_timeout_ms = calibration_timeout_ms
        self._auto_start = auto_start
        self._clock = clock

        self._normalizer = HeadingNormalizer()
        self._subscription: Optional[Subscription] = None
        self._activated = False
        self._permission_denied = False
        self._message: Optional[str] = None
        self._last_sample_ts: Optional[float] = None
        self._time_base: Optional[str] = None
        self._clock_offset_ms = 0.0
        self._listeners: List[StatusListener] = []

    @classmethod
    def restore(
        cls,
        config: Config,
        source: HeadingSource,
        db: Optional[Database] = None,
        keep_awake: Optional[KeepAwake] = None,
    ) -> "DetectionSession":
        """
        Build a session from config, resuming persisted slots from db.

        Persisted tolerance/debounce override the YAML defaults; absent or
        malformed slots fall back to them.
        """
        detection = config.detection
        initial_count = 0.0
        if db is not None:
            tolerance = db.load_number(KEY_TOLERANCE, detection.tolerance_deg, *TOLERANCE_DEG_RANGE)
            debounce = db.load_number(KEY_DEBOUNCE, detection.debounce_ms, *DEBOUNCE_MS_RANGE)
            detection = replace(detection, tolerance_deg=float(tolerance), debounce_ms=int(debounce))
            initial_count = db.load_number(KEY_COUNTER, 0.0, min_value=0.0)

        engine = SwivelEngine(detection, config.counter, initial_count=initial_count)
        session = cls(
            engine,
            source,
            db=db,
            keep_awake=keep_awake,
            calibration_timeout_ms=config.sensor.calibration_timeout_ms,
        )
        if db is not None:
            session._restore_calibration()
        logging.info(
            f"Session restored: count={engine.count:g} calibrated={engine.is_calibrated} "
            f"tolerance={detection.tolerance_deg:g} debounce={detection.debounce_ms}ms"
        )
        return session

    def _restore_calibration(self) -> None:
        restore_steps = [(KEY_ORIGIN, self._engine.set_origin), (KEY_DESTINATION, self._engine.set_destination)]
        for i in range(self._engine.config.waypoint_count):
            restore_steps.append((waypoint_key(i), lambda h, i=i: self._engine.set_waypoint(i, h)))

        for key, apply in restore_steps:
            heading = self._db.load_heading(key)
            if heading is None:
                continue
            try:
                apply(heading)
            except DegenerateCalibrationError as e:
                logging.warning(f"Ignoring persisted {key}: {e}")
                self._db.delete_setting(key)

    # -------------------------------------------------------------------------
    # Status projection
    # -------------------------------------------------------------------------

    @property
    def engine(self) -> SwivelEngine:
        return self._engine

    @property
    def source(self) -> HeadingSource:
        return self._source

    @property
    def running(self) -> bool:
        return self._engine.running

    @property
    def status(self) -> SessionStatus:
        if self._permission_denied:
            return SessionStatus.PERMISSION_DENIED
        if not self._engine.running:
            return SessionStatus.IDLE
        if not self._normalizer.has_heading:
            return SessionStatus.INITIALIZING
        if not self._engine.is_calibrated:
            return SessionStatus.READY_TO_CALIBRATE
        return SessionStatus.DETECTING

    def snapshot(self) -> StatusSnapshot:
        return StatusSnapshot(
            status=self.status,
            running=self._engine.running,
            activated=self._activated,
            heading=self._normalizer.last_heading,
            origin=self._engine.origin,
            destination=self._engine.destination,
            waypoints=self._engine.waypoints,
            counter=self._engine.count,
            message=self._message,
            last_sample_ts=self._last_sample_ts,
            timestamp=time.time(),
        )

    def add_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StatusListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _publish(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception as e:
                logging.error(f"Status listener failed: {e}")

    # -------------------------------------------------------------------------
    # Detection lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> bool:
        """
        Request sensor access and start detection.

        Returns:
            True if running afterwards, False if permission was denied.
        """
        if self._engine.running:
            return True

        granted = await self._source.request_permission()
        if not granted:
            self._permission_denied = True
            self._message = MSG_PERMISSION_DENIED
            logging.warning("Sensor permission denied, detection not started")
            self._publish()
            return False

        # Another start may have completed while waiting for permission
        if self._engine.running:
            return True

        self._permission_denied = False
        self._subscription = self._source.subscribe(self._on_sample)
        self._normalizer.reset()
        self._engine.start()
        self._activated = True
        self._message = None
        self._keep_awake.acquire()
        logging.info(f"Detection started on source {self._source.source_id}")
        self._publish()
        return True

    def stop(self) -> None:
        """Stop detection. Safe before any start and when already stopped."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if not self._engine.running:
            return
        self._engine.stop()
        self._keep_awake.release()
        self._message = None
        logging.info("Detection stopped")
        self._publish()

    async def toggle(self) -> bool:
        """Pause when running, otherwise start/resume. Returns the running state."""
        if self._engine.running:
            self.stop()
            return False
        return await self.start()

    async def retry_permission(self) -> bool:
        """Ask for sensor access again after a denial."""
        self._source.reset_permission()
        granted = await self._source.request_permission()
        self._permission_denied = not granted
        self._message = MSG_PERMISSION_GRANTED if granted else MSG_STILL_DENIED
        logging.info(f"Permission retry: {'granted' if granted else 'denied'}")
        self._publish()
        return granted

    def close(self) -> None:
        self.stop()
        self._source.close()

    def _now_ms(self, sample: OrientationSample) -> float:
        """
        Observation time in ms on one time base per session.

        The first sample picks the base: its own timestamp when it carries a
        finite one, the session clock otherwise. On the sample base, samples
        without a usable timestamp are placed relative to the last stamped
        one; on the clock base, sample timestamps are ignored.
        """
        stamp = sample.timestamp_ms
        if stamp is not None and not math.isfinite(stamp):
            stamp = None
        clock_ms = self._clock() * 1000.0

        if self._time_base is None:
            self._time_base = TIME_BASE_SAMPLE if stamp is not None else TIME_BASE_CLOCK
        if self._time_base == TIME_BASE_CLOCK:
            return clock_ms

        if stamp is not None:
            self._clock_offset_ms = float(stamp) - clock_ms
            return float(stamp)
        return clock_ms + self._clock_offset_ms

    def _on_sample(self, sample: OrientationSample) -> None:
        heading = self._normalizer.normalize(sample)
        self._last_sample_ts = time.time()

        before = self._engine.count
        event = self._engine.observe(heading, self._now_ms(sample))
        if event is not None:
            value = event.value
            self._record(CountEvent.from_swivel(event, delta=value - before, value=value, timestamp=time.time()))
            self._save(KEY_COUNTER, value)
        self._publish()

    # -------------------------------------------------------------------------
    # Calibration
    # -------------------------------------------------------------------------

    async def read_fresh_heading(self) -> float:
        """
        Wait for the next sample from the source and return its heading.

        Raises:
            PermissionDeniedError: Sensor access not granted.
            CalibrationTimeoutError: No sample within calibration_timeout_ms.
        """
        granted = await self._source.request_permission()
        if not granted:
            self._permission_denied = True
            self._message = MSG_PERMISSION_REQUIRED
            self._publish()
            raise PermissionDeniedError("Sensor permission denied")

        future: asyncio.Future = asyncio.get_running_loop().create_future()

        def on_sample(sample: OrientationSample) -> None:
            if not future.done():
                future.set_result(sample)

        subscription = self._source.subscribe(on_sample)
        try:
            sample = await asyncio.wait_for(future, timeout=self._calibration_timeout_ms / 1000.0)
        except asyncio.TimeoutError:
            self._message = MSG_NO_SENSOR_DATA
            logging.warning(f"No heading sample within {self._calibration_timeout_ms}ms")
            self._publish()
            raise CalibrationTimeoutError(
                f"No heading sample within {self._calibration_timeout_ms}ms"
            ) from None
        finally:
            subscription.unsubscribe()

        return self._normalizer.normalize(sample)

    async def set_origin(self) -> float:
        """Calibrate the origin from a fresh sample."""
        heading = await self.read_fresh_heading()
        return await self.set_origin_heading(heading)

    async def set_destination(self) -> float:
        """Calibrate the destination from a fresh sample."""
        heading = await self.read_fresh_heading()
        return await self.set_destination_heading(heading)

    async def set_waypoint(self, index: int) -> float:
        """Calibrate waypoint `index` from a fresh sample."""
        heading = await self.read_fresh_heading()
        return await self.set_waypoint_heading(index, heading)

    async def set_origin_heading(self, heading: float) -> float:
        heading = self._calibrate(self._engine.set_origin, heading)
        self._save(KEY_ORIGIN, heading)
        await self._after_calibration()
        return heading

    async def set_destination_heading(self, heading: float) -> float:
        heading = self._calibrate(self._engine.set_destination, heading)
        self._save(KEY_DESTINATION, heading)
        await self._after_calibration()
        return heading

    async def set_waypoint_heading(self, index: int, heading: float) -> float:
        heading = self._calibrate(lambda h: self._engine.set_waypoint(index, h), heading)
        self._save(waypoint_key(index), heading)
        await self._after_calibration()
        return heading

    def reset_calibration(self) -> None:
        self._engine.reset_calibration()
        self._clear_calibration_slots()
        self._publish()

    def _calibrate(self, apply: Callable[[float], float], heading: float) -> float:
        try:
            heading = apply(heading)
        except ValueError as e:
            self._message = str(e)
            logging.warning(f"Calibration rejected: {e}")
            self._publish()
            raise
        self._message = None
        return heading

    async def _after_calibration(self) -> None:
        if self._auto_start and self._engine.is_calibrated and not self._engine.running:
            await self.start()
            return
        self._publish()

    def _clear_calibration_slots(self) -> None:
        self._save(KEY_ORIGIN, None)
        self._save(KEY_DESTINATION, None)
        for i in range(self._engine.config.waypoint_count):
            self._save(waypoint_key(i), None)

    # -------------------------------------------------------------------------
    # Counter
    # -------------------------------------------------------------------------

    def manual_increment(self, step: Optional[float] = None) -> float:
        before = self._engine.count
        value = self._engine.increment(step)
        self._counter_changed(KIND_MANUAL_INCREMENT, before, value)
        return value

    def manual_decrement(self, step: Optional[float] = None) -> float:
        before = self._engine.count
        value = self._engine.decrement(step)
        self._counter_changed(KIND_MANUAL_DECREMENT, before, value)
        return value

    def reset_counter(self) -> float:
        before = self._engine.count
        value = self._engine.reset_counter()
        self._counter_changed(KIND_RESET, before, value)
        return value

    def _counter_changed(self, kind: str, before: float, value: float) -> None:
        self._record(CountEvent(kind=kind, delta=value - before, value=value, timestamp=time.time()))
        self._save(KEY_COUNTER, value)
        self._publish()

    def new_site(self) -> None:
        """
        Start over at a new site: stop detection, zero the counter and clear
        calibration and sensor readiness.
        """
        self.stop()
        before = self._engine.count
        self._engine.reset_counter()
        self._engine.reset_calibration()
        self._engine.restart()
        self._normalizer.reset()
        self._time_base = None
        self._activated = False
        self._message = None
        self._clear_calibration_slots()
        self._record(CountEvent(kind=KIND_RESET, delta=-before, value=0.0, timestamp=time.time()))
        self._save(KEY_COUNTER, 0.0)
        logging.info("New site: counter and calibration reset")
        self._publish()

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def configure(
        self,
        tolerance_deg: Optional[float] = None,
        debounce_ms: Optional[int] = None,
        alignment_window_ms: Optional[int] = None,
    ) -> DetectionConfig:
        """
        Change detection settings; effective from the next observation.

        Raises:
            ValueError: If a value is out of range.
        """
        current = self._engine.config
        updated = replace(
            current,
            tolerance_deg=current.tolerance_deg if tolerance_deg is None else float(tolerance_deg),
            debounce_ms=current.debounce_ms if debounce_ms is None else int(debounce_ms),
            alignment_window_ms=(
                current.alignment_window_ms if alignment_window_ms is None else int(alignment_window_ms)
            ),
        )
        error = updated.validate()
        if error:
            raise ValueError(error)

        self._engine.update_config(updated)
        self._save(KEY_TOLERANCE, updated.tolerance_deg)
        self._save(KEY_DEBOUNCE, updated.debounce_ms)
        logging.info(
            f"Detection config updated: tolerance={updated.tolerance_deg:g} "
            f"debounce={updated.debounce_ms}ms window={updated.alignment_window_ms}ms"
        )
        self._publish()
        return updated

    # -------------------------------------------------------------------------
    # Persistence helpers
    # -------------------------------------------------------------------------

    def _save(self, key: str, value) -> None:
        if self._db is not None:
            self._db.save_setting(key, value)

    def _record(self, event: CountEvent) -> None:
        if self._db is not None:
            self._db.add_count_event(event)
