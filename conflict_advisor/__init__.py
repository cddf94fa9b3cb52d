from .config import OptimizationConstraints, ResolutionOptions, Settings, load_settings, configure_logging
from .conflict_detector import ConflictDetector, detect_conflicts, analyze_conflict_impact
from .recommendations import RecommendationsEngine, generate_recommendations
from .simulator import ResolutionSimulator, simulate_recommendation, apply_recommendation
from .optimizer import OptimizationEngine, create_optimization_engine, optimize_schedule, prioritize_conflicts
from .conflict_resolver import ConflictResolver
from .simulation_engine import SimulationEngine, ScenarioNotFoundError
from .kpi import calculate_kpis
from .dataset import load_section, DatasetError

__version__ = "0.1.0"
