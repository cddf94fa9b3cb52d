import pytest
from conflict_advisor.models import Train, Station, Track, SimulationState
from conflict_advisor.config import ResolutionOptions


def make_train(train_id, **overrides):
    fields = dict(
        id=train_id,
        number=f"N{train_id}",
        name=f"Train {train_id}",
        type="express",
        priority=5,
        speed=60,
        delay=0,
    )
    fields.update(overrides)
    return Train(**fields)


@pytest.fixture
def express_x():
    return make_train("X", priority=9, type="express", current_station="STN001", next_station="STN002")


@pytest.fixture
def freight_y():
    return make_train("Y", priority=3, type="freight", current_station="STN003", next_station="STN002", delay=0.5)


@pytest.fixture
def crossing_pair(express_x, freight_y):
    """Two trains 0.5 min apart on the approach to STN002"""
    return [express_x, freight_y]


@pytest.fixture
def stations():
    return [
        Station(id="STN001", name="New Delhi", code="NDLS", platforms=16),
        Station(id="STN002", name="Ghaziabad Junction", code="GZB", platforms=8),
        Station(id="STN003", name="Moradabad", code="MB", platforms=1),
        Station(id="STN004", name="Bareilly", code="BE", platforms=1),
    ]


@pytest.fixture
def tracks():
    return [
        Track(id="TRK001", name="NDLS-GZB", from_station="STN001", to_station="STN002"),
        Track(id="TRK002", name="GZB-MB", from_station="STN002", to_station="STN003"),
    ]


@pytest.fixture
def estimated_options():
    return ResolutionOptions(hold_reduction_mode="estimated")


@pytest.fixture
def quiet_state(stations, tracks):
    """Two trains that share no station and no track"""
    return SimulationState(
        trains=[
            make_train("T1", priority=8, current_station="STN001", next_station="STN002"),
            make_train("T2", priority=4, type="freight", current_station="STN003", next_station="STN004"),
        ],
        stations=stations,
        tracks=tracks,
    )
