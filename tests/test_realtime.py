import threading
import pytest
from pydantic import ValidationError
from conflict_advisor.realtime import RealTimeEngine


@pytest.fixture
def live(crossing_pair, stations):
    return RealTimeEngine(crossing_pair, stations, [], interval_seconds=0.01)


def test_tick_detects_and_attaches_recommendations(live):
    state = live.tick()

    assert state.tick == 1
    assert len(state.conflicts) == 1
    assert state.conflicts[0].recommendation.type == "hold"
    assert state.kpis.punctuality == 100
    assert state.trains[0].coordinates.lat == pytest.approx(0.001)


def test_engine_works_on_its_own_copy(live, crossing_pair):
    live.tick()
    assert crossing_pair[0].coordinates.lat == 0


def test_subscribers_receive_events_and_can_unsubscribe(live):
    received = []
    unsubscribe = live.subscribe(received.append)

    live.tick()
    unsubscribe()
    live.tick()

    assert [e.type for e in received] == ["data_updated"]
    assert received[0].data["conflicts"] == 1


def test_failing_subscriber_does_not_stop_others(live, caplog):
    received = []

    def broken(event):
        raise RuntimeError("dashboard went away")

    live.subscribe(broken)
    live.subscribe(received.append)

    live.tick()

    assert len(received) == 1
    assert "dashboard went away" in caplog.text


def test_update_train(live):
    events = []
    live.subscribe(events.append)

    updated = live.update_train("Y", delay=12, status="delayed")

    assert updated.delay == 12
    assert live.get_system_state().trains[1].status == "delayed"
    assert events[0].type == "train_updated"
    assert live.update_train("GHOST", delay=1) is None
    with pytest.raises(ValidationError):
        live.update_train("Y", priority=11)


def test_resolved_state_clears_conflicts(live):
    live.update_train("Y", delay=10)
    assert live.tick().conflicts == []


def test_start_and_stop(live):
    ticked = threading.Event()
    types = []

    def listener(event):
        types.append(event.type)
        if event.type == "data_updated":
            ticked.set()

    live.subscribe(listener)
    live.start()
    assert live.running
    assert ticked.wait(timeout=5)
    live.stop(timeout=5)

    assert not live.running
    assert types[0] == "started"
    assert types[-1] == "stopped"
    assert live.get_system_state().tick >= 1


def test_stop_timeout_keeps_single_loop(live, caplog):
    entered = threading.Event()
    release = threading.Event()

    def slow_listener(event):
        if event.type == "data_updated":
            entered.set()
            release.wait(timeout=5)

    live.subscribe(slow_listener)
    live.start()
    assert entered.wait(timeout=5)

    live.stop(timeout=0.05)
    assert live.running
    assert "did not stop" in caplog.text

    live.start()
    assert len([t for t in threading.enumerate() if t.name == "realtime-engine"]) == 1

    release.set()
    live.stop(timeout=5)
    assert not live.running
