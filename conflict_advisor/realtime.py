"""
Background service that keeps a live section snapshot current
"""
from pydantic import BaseModel, Field
from typing import Any, Callable, Dict, List, Literal, Optional
from datetime import datetime
from .models import Train, Station, Track, Conflict, KPI
from .optimizer import OptimizationEngine
from .kpi import calculate_kpis
import copy
import logging
import threading

logger = logging.getLogger(__name__)

POSITION_STEP = 0.001


class EngineEvent(BaseModel):
    type: Literal["data_updated", "train_updated", "started", "stopped"]
    timestamp: datetime = Field(default_factory=datetime.now)
    data: Dict[str, Any] = Field(default_factory=dict)


class SystemState(BaseModel):
    trains: List[Train]
    stations: List[Station]
    tracks: List[Track]
    conflicts: List[Conflict]
    kpis: KPI
    tick: int
    running: bool


Subscriber = Callable[[EngineEvent], None]


class RealTimeEngine:
    """
    Explicitly constructed live engine; nothing starts on import.

    Subscribers run synchronously on the engine thread in registration
    order. A subscriber that raises is logged and the loop carries on.
    """

    def __init__(self, trains: List[Train], stations: List[Station], tracks: List[Track],
                 engine: Optional[OptimizationEngine] = None, interval_seconds: float = 1.0):
        self.engine = engine or OptimizationEngine()
        self.interval_seconds = interval_seconds
        self.trains = copy.deepcopy(trains)
        self.stations = copy.deepcopy(stations)
        self.tracks = copy.deepcopy(tracks)
        self.conflicts: List[Conflict] = []
        self.kpis = KPI()
        self.tick_count = 0
        self.ai_acceptance_rate = 0.0

        self._subscribers: List[Subscriber] = []
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="realtime-engine", daemon=True)
        # subscribers see "started" before the first tick
        self._publish(EngineEvent(type="started"))
        self._thread.start()
        logger.info(f"Real-time engine started, interval {self.interval_seconds}s")

    def stop(self, timeout: Optional[float] = None):
        if not self.running:
            return
        self._stop_event.set()
        self._thread.join(timeout)
        if self._thread.is_alive():
            # keep the handle so start() cannot launch a second loop
            logger.warning(f"Real-time engine did not stop within {timeout}s")
            return
        self._thread = None
        logger.info(f"Real-time engine stopped after {self.tick_count} ticks")
        self._publish(EngineEvent(type="stopped"))

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; the returned function unregisters it"""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def tick(self) -> SystemState:
        """One synchronous pass: move, detect, recommend, measure, publish"""
        with self._lock:
            self.tick_count += 1
            for train in self.trains:
                if train.speed > 0 and train.status != "cancelled":
                    direction = 1 if train.next_station else -1
                    train.coordinates.lat += train.speed / 60 * POSITION_STEP * direction

            conflicts = self.engine.detect_conflicts(self.trains, self.stations, self.tracks)
            for conflict in conflicts:
                recommendations = self.engine.generate_recommendations(conflict, self.trains)
                conflict.recommendation = recommendations[0] if recommendations else None
            self.conflicts = conflicts

            self.kpis = calculate_kpis(
                self.trains,
                ai_acceptance_rate=self.ai_acceptance_rate,
                on_time_threshold=self.engine.constraints.on_time_threshold,
            )
            state = self._snapshot()

        if conflicts:
            logger.debug(f"Tick {state.tick}: {len(conflicts)} active conflicts")
        self._publish(EngineEvent(type="data_updated", data={
            "tick": state.tick,
            "conflicts": len(state.conflicts),
            "punctuality": state.kpis.punctuality,
        }))
        return state

    def update_train(self, train_id: str, **changes) -> Optional[Train]:
        """Apply field changes to a live train; unknown ids return None"""
        with self._lock:
            index = next((i for i, t in enumerate(self.trains) if t.id == train_id), None)
            if index is None:
                logger.warning(f"update_train: train {train_id} not found")
                return None
            # validated, so an out-of-range priority or delay raises here
            updated = Train.model_validate({**self.trains[index].model_dump(), **changes})
            self.trains[index] = updated

        self._publish(EngineEvent(type="train_updated", data={"train_id": train_id, "changes": changes}))
        return updated

    def set_acceptance_rate(self, rate: float):
        with self._lock:
            self.ai_acceptance_rate = rate

    def get_system_state(self) -> SystemState:
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> SystemState:
        return SystemState(
            trains=copy.deepcopy(self.trains),
            stations=copy.deepcopy(self.stations),
            tracks=copy.deepcopy(self.tracks),
            conflicts=copy.deepcopy(self.conflicts),
            kpis=self.kpis.model_copy(),
            tick=self.tick_count,
            running=self.running,
        )

    def _publish(self, event: EngineEvent):
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception(f"Subscriber {callback!r} failed on {event.type} event")

    def _loop(self):
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("Real-time tick failed")
            self._stop_event.wait(self.interval_seconds)
