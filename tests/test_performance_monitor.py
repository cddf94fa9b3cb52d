import pytest
from datetime import datetime, timedelta
from conflict_advisor.performance_monitor import PerformanceMonitor, customer_satisfaction, trend_direction
from conftest import make_train

T0 = datetime(2024, 3, 1, 8, 0)


@pytest.fixture
def monitor():
    return PerformanceMonitor()


@pytest.fixture
def on_time_trains():
    return [make_train(f"T{i}") for i in range(4)]


def test_record_metrics(monitor, on_time_trains):
    metrics = monitor.record_metrics(on_time_trains, ai_acceptance_rate=80, timestamp=T0)

    assert metrics.punctuality == 100
    assert metrics.throughput == 10
    assert metrics.resource_utilization == 20
    assert metrics.customer_satisfaction == 100
    assert monitor.get_system_health_score() == 79


def test_health_score_without_metrics(monitor):
    assert monitor.get_system_health_score() == 0


def test_alerts_are_deduplicated_within_ten_minutes(monitor, on_time_trains):
    # four trains give 10 trains/h, below the 15 trains/h critical line
    monitor.record_metrics(on_time_trains, timestamp=T0)
    monitor.record_metrics(on_time_trains, timestamp=T0 + timedelta(minutes=5))
    assert [a.metric for a in monitor.alerts] == ["throughput"]
    assert monitor.alerts[0].type == "critical"

    monitor.record_metrics(on_time_trains, timestamp=T0 + timedelta(minutes=11))
    assert len(monitor.alerts) == 2


def test_acknowledge_alert(monitor, on_time_trains):
    monitor.record_metrics(on_time_trains, timestamp=T0)
    alert_id = monitor.get_active_alerts()[0].id

    assert monitor.acknowledge_alert(alert_id) is True
    assert monitor.get_active_alerts() == []
    assert monitor.acknowledge_alert("alert_missing") is False


def test_delay_alert_fires_on_high_values(monitor):
    late = [make_train(f"L{i}", delay=20) for i in range(12)]
    monitor.record_metrics(late, timestamp=T0)

    delay_alert = next(a for a in monitor.alerts if a.metric == "average_delay")
    assert delay_alert.type == "critical"
    assert delay_alert.threshold == 15


def test_history_keeps_one_day(monitor, on_time_trains):
    monitor.record_metrics(on_time_trains, timestamp=T0)
    monitor.record_metrics(on_time_trains, timestamp=T0 + timedelta(hours=25))
    assert len(monitor.metrics_history) == 1


def test_trends(monitor, on_time_trains):
    monitor.record_metrics(on_time_trains, timestamp=T0)
    mixed = on_time_trains[:2] + [make_train("D1", delay=10), make_train("D2", delay=10)]
    monitor.record_metrics(mixed, timestamp=T0 + timedelta(minutes=30))

    trends = {t.metric: t for t in monitor.get_trends("1h", now=T0 + timedelta(minutes=31))}

    assert trends["punctuality"].direction == "down"
    assert trends["punctuality"].change_percentage == -50
    assert trends["average_delay"].direction == "down"
    assert trends["throughput"].direction == "stable"


def test_trends_order_samples_by_timestamp(monitor, on_time_trains):
    mixed = on_time_trains[:2] + [make_train("D1", delay=10), make_train("D2", delay=10)]
    monitor.record_metrics(mixed, timestamp=T0 + timedelta(minutes=30))
    monitor.record_metrics(on_time_trains, timestamp=T0)

    trends = {t.metric: t for t in monitor.get_trends("1h", now=T0 + timedelta(minutes=31))}

    assert trends["punctuality"].direction == "down"
    assert trends["punctuality"].change_percentage == -50


def test_trends_need_two_samples(monitor, on_time_trains):
    monitor.record_metrics(on_time_trains, timestamp=T0)
    assert monitor.get_trends("24h", now=T0) == []
    with pytest.raises(ValueError):
        monitor.get_trends("2h")


def test_report(monitor, on_time_trains):
    monitor.record_metrics(on_time_trains, ai_acceptance_rate=60, timestamp=T0)
    monitor.record_metrics(on_time_trains, ai_acceptance_rate=60, conflicts_resolved=3,
                           timestamp=T0 + timedelta(minutes=20))

    report = monitor.generate_report(T0, T0 + timedelta(hours=1))

    assert report.summary["total_trains"] == 20
    assert report.summary["on_time_percentage"] == 100
    assert report.summary["conflicts_handled"] == 3
    assert len(report.alerts) == 2
    assert any("acceptance rate" in r for r in report.recommendations)
    assert any("critical performance alerts" in r for r in report.recommendations)
    assert monitor.reports == [report]


def test_report_needs_metrics(monitor):
    with pytest.raises(ValueError):
        monitor.generate_report(T0, T0 + timedelta(hours=1))


@pytest.mark.parametrize("punctuality, delay, expected", [
    (90, 2, 90),
    (90, 6, 80),
    (90, 12, 70),
    (10, 12, 0),
])
def test_customer_satisfaction(punctuality, delay, expected):
    assert customer_satisfaction(punctuality, delay) == expected


def test_trend_direction_band():
    assert trend_direction(100, 104) == "stable"
    assert trend_direction(100, 110) == "up"
    assert trend_direction(10, 12, inverted=True) == "down"
    assert trend_direction(0, 0) == "stable"
