import logging
from typing import Dict, List, Optional, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from .models import Train, Conflict
from .kpi import (
    calculate_punctuality, calculate_average_delay, calculate_throughput, calculate_system_efficiency,
)

logger = logging.getLogger(__name__)

THROUGHPUT_SCALE = 2.5  # active trains to trains/hour
SECTION_CAPACITY = 20  # trains
MAX_THROUGHPUT = 30  # trains/hour, health score normalisation
HISTORY_WINDOW = timedelta(hours=24)
ALERT_DEDUP_WINDOW = timedelta(minutes=10)
TREND_STABLE_BAND = 0.05

TIMEFRAMES = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}

HEALTH_WEIGHTS = {
    "punctuality": 0.3,
    "efficiency": 0.25,
    "throughput": 0.2,
    "satisfaction": 0.15,
    "utilization": 0.1,
}


@dataclass
class PerformanceMetrics:
    """One snapshot of section performance"""
    timestamp: datetime
    punctuality: float = 0.0
    average_delay: float = 0.0
    throughput: float = 0.0
    conflicts_resolved: int = 0
    ai_acceptance_rate: float = 0.0
    system_efficiency: float = 0.0
    resource_utilization: float = 0.0
    customer_satisfaction: float = 0.0


@dataclass
class KPITarget:
    metric: str
    target: float
    warning: float
    critical: float
    unit: str
    lower_is_better: bool = False


@dataclass
class PerformanceAlert:
    id: str
    type: str  # warning | critical
    metric: str
    threshold: float
    current_value: float
    message: str
    timestamp: datetime
    acknowledged: bool = False


@dataclass
class PerformanceTrend:
    metric: str
    direction: str  # up | down | stable, "up" always means better
    change_percentage: float
    timeframe: str


@dataclass
class PerformanceReport:
    id: str
    title: str
    period_start: datetime
    period_end: datetime
    summary: Dict[str, float]
    trends: List[PerformanceTrend] = field(default_factory=list)
    alerts: List[PerformanceAlert] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    generated_at: datetime = field(default_factory=datetime.now)


def default_targets() -> Dict[str, KPITarget]:
    return {
        "punctuality": KPITarget("punctuality", 85, 75, 65, "%"),
        "average_delay": KPITarget("average_delay", 5, 10, 15, "min", lower_is_better=True),
        "throughput": KPITarget("throughput", 25, 20, 15, "trains/h"),
        "system_efficiency": KPITarget("system_efficiency", 90, 80, 70, "%"),
    }


def customer_satisfaction(punctuality: float, average_delay: float) -> float:
    satisfaction = punctuality
    if average_delay > 10:
        satisfaction -= 20
    elif average_delay > 5:
        satisfaction -= 10
    return max(0.0, min(100.0, satisfaction))


def trend_direction(old_value: float, new_value: float, inverted: bool = False) -> str:
    if old_value == 0:
        change = 0.0 if new_value == 0 else (1.0 if new_value > 0 else -1.0)
    else:
        change = (new_value - old_value) / old_value

    if abs(change) < TREND_STABLE_BAND:
        return "stable"
    if inverted:
        return "down" if change > 0 else "up"
    return "up" if change > 0 else "down"


def change_percentage(old_value: float, new_value: float) -> float:
    if old_value == 0:
        return 0.0
    return round((new_value - old_value) / old_value * 100, 2)


class PerformanceMonitor:
    """Track section KPIs over time, raise alerts against targets and report"""

    def __init__(self, targets: Optional[Dict[str, KPITarget]] = None):
        self.metrics_history: List[PerformanceMetrics] = []
        self.alerts: List[PerformanceAlert] = []
        self.reports: List[PerformanceReport] = []
        self.targets = targets or default_targets()

    def record_metrics(self, trains: Sequence[Train], conflicts: Sequence[Conflict] = (),
                       ai_acceptance_rate: float = 0.0, conflicts_resolved: int = 0,
                       timestamp: Optional[datetime] = None) -> PerformanceMetrics:
        """Record a snapshot, prune history older than 24h and check targets"""
        timestamp = timestamp or datetime.now()

        punctuality = calculate_punctuality(trains)
        average_delay = calculate_average_delay(trains)
        metrics = PerformanceMetrics(
            timestamp=timestamp,
            punctuality=punctuality,
            average_delay=average_delay,
            throughput=calculate_throughput(trains, scale=THROUGHPUT_SCALE),
            conflicts_resolved=conflicts_resolved,
            ai_acceptance_rate=ai_acceptance_rate,
            system_efficiency=calculate_system_efficiency(trains, conflicts),
            resource_utilization=min(100.0, len(trains) / SECTION_CAPACITY * 100),
            customer_satisfaction=customer_satisfaction(punctuality, average_delay),
        )

        self.metrics_history.append(metrics)
        cutoff = timestamp - HISTORY_WINDOW
        self.metrics_history = [m for m in self.metrics_history if m.timestamp > cutoff]

        self._check_alerts(metrics)
        return metrics

    def get_trends(self, timeframe: str = "24h", now: Optional[datetime] = None) -> List[PerformanceTrend]:
        """Earliest-vs-latest trend per metric; empty with fewer than two samples"""
        if timeframe not in TIMEFRAMES:
            raise ValueError(f"Unknown timeframe {timeframe!r}, expected one of {sorted(TIMEFRAMES)}")

        now = now or datetime.now()
        cutoff = now - TIMEFRAMES[timeframe]
        relevant = [m for m in self.metrics_history if m.timestamp > cutoff]
        if len(relevant) < 2:
            return []

        # history may be recorded out of order
        earliest = min(relevant, key=lambda m: m.timestamp)
        latest = max(relevant, key=lambda m: m.timestamp)
        trends = []
        for metric in ("punctuality", "average_delay", "throughput", "system_efficiency"):
            old_value, new_value = getattr(earliest, metric), getattr(latest, metric)
            trends.append(PerformanceTrend(
                metric=metric,
                direction=trend_direction(old_value, new_value, inverted=metric == "average_delay"),
                change_percentage=change_percentage(old_value, new_value),
                timeframe=timeframe,
            ))
        return trends

    def generate_report(self, start: datetime, end: datetime) -> PerformanceReport:
        relevant = [m for m in self.metrics_history if start <= m.timestamp <= end]
        if not relevant:
            raise ValueError("No metrics available for the specified period")

        count = len(relevant)
        summary = {
            "total_trains": round(sum(m.throughput for m in relevant)),
            "on_time_percentage": round(sum(m.punctuality for m in relevant) / count, 2),
            "average_delay": round(sum(m.average_delay for m in relevant) / count, 2),
            "conflicts_handled": sum(m.conflicts_resolved for m in relevant),
            "ai_recommendations_accepted": round(sum(m.ai_acceptance_rate for m in relevant) / count),
        }

        trends = self.get_trends("24h", now=end)
        period_alerts = [a for a in self.alerts if start <= a.timestamp <= end]

        report = PerformanceReport(
            id=f"report_{int(datetime.now().timestamp() * 1000)}",
            title=f"Performance Report - {start.date().isoformat()} to {end.date().isoformat()}",
            period_start=start,
            period_end=end,
            summary=summary,
            trends=trends,
            alerts=period_alerts,
            recommendations=self._recommendations(relevant, trends, period_alerts),
        )
        self.reports.append(report)
        logger.info(f"Generated {report.title} from {count} samples")
        return report

    def get_active_alerts(self) -> List[PerformanceAlert]:
        return [a for a in self.alerts if not a.acknowledged]

    def acknowledge_alert(self, alert_id: str) -> bool:
        for alert in self.alerts:
            if alert.id == alert_id:
                alert.acknowledged = True
                return True
        return False

    def get_historical_metrics(self, hours: float = 24, now: Optional[datetime] = None) -> List[PerformanceMetrics]:
        cutoff = (now or datetime.now()) - timedelta(hours=hours)
        return [m for m in self.metrics_history if m.timestamp > cutoff]

    def get_system_health_score(self) -> int:
        """Weighted 0-100 score of the latest snapshot"""
        if not self.metrics_history:
            return 0

        latest = max(self.metrics_history, key=lambda m: m.timestamp)
        normalized = {
            "punctuality": min(100.0, latest.punctuality),
            "efficiency": min(100.0, latest.system_efficiency),
            "throughput": min(100.0, latest.throughput / MAX_THROUGHPUT * 100),
            "satisfaction": min(100.0, latest.customer_satisfaction),
            "utilization": min(100.0, latest.resource_utilization),
        }
        return round(sum(normalized[k] * w for k, w in HEALTH_WEIGHTS.items()))

    def _check_alerts(self, metrics: PerformanceMetrics):
        timestamp = metrics.timestamp
        for name, target in self.targets.items():
            value = getattr(metrics, name)
            label = name.replace("_", " ")

            alert_type = None
            if target.lower_is_better:
                if value >= target.critical:
                    alert_type = "critical"
                    message = (f"{label} critically high: {value:.1f}{target.unit} "
                               f"(target: <{target.target:g}{target.unit})")
                elif value >= target.warning:
                    alert_type = "warning"
                    message = f"{label} above warning threshold: {value:.1f}{target.unit}"
            else:
                if value <= target.critical:
                    alert_type = "critical"
                    message = (f"{label} critically low: {value:.1f}{target.unit} "
                               f"(target: >{target.target:g}{target.unit})")
                elif value <= target.warning:
                    alert_type = "warning"
                    message = f"{label} below warning threshold: {value:.1f}{target.unit}"

            if alert_type is None:
                continue

            recent = [a for a in self.alerts
                      if a.metric == name and a.timestamp > timestamp - ALERT_DEDUP_WINDOW]
            if recent:
                continue

            alert = PerformanceAlert(
                id=f"alert_{int(timestamp.timestamp() * 1000)}_{name}",
                type=alert_type,
                metric=name,
                threshold=target.critical if alert_type == "critical" else target.warning,
                current_value=value,
                message=message,
                timestamp=timestamp,
            )
            self.alerts.append(alert)
            logger.warning(f"Performance alert ({alert_type}): {message}")

        cutoff = timestamp - HISTORY_WINDOW
        self.alerts = [a for a in self.alerts if a.timestamp > cutoff]

    def _recommendations(self, metrics: List[PerformanceMetrics], trends: List[PerformanceTrend],
                         alerts: List[PerformanceAlert]) -> List[str]:
        recommendations = []
        directions = {t.metric: t.direction for t in trends}

        if directions.get("punctuality") == "down":
            recommendations.append("Consider increasing recommendation acceptance rate to improve punctuality")
        if directions.get("average_delay") == "down":
            recommendations.append("Implement proactive conflict detection to reduce average delays")
        if any(a.type == "critical" for a in alerts):
            recommendations.append("Address critical performance alerts immediately to prevent system degradation")

        if metrics:
            latest = max(metrics, key=lambda m: m.timestamp)
            if latest.ai_acceptance_rate < 70:
                recommendations.append("Increase controller training on recommendations to improve acceptance rate")
            if latest.system_efficiency < 80:
                recommendations.append("Review resource allocation and consider capacity optimization")

        return recommendations
