"""
Load a section snapshot (stations, tracks, trains) from JSON
"""
from pydantic import BaseModel, Field, ValidationError
from typing import List, Optional
from pathlib import Path
from .models import Station, Track, Train, Conflict, SimulationState
import logging

logger = logging.getLogger(__name__)

SAMPLE_SECTION = Path(__file__).parent / "data" / "sample_section.json"


class DatasetError(ValueError):
    pass


class SectionSnapshot(BaseModel):
    stations: List[Station] = Field(default_factory=list)
    tracks: List[Track] = Field(default_factory=list)
    trains: List[Train]
    conflicts: List[Conflict] = Field(default_factory=list)

    def to_simulation_state(self) -> SimulationState:
        return SimulationState(
            trains=[t.model_copy(deep=True) for t in self.trains],
            stations=[s.model_copy(deep=True) for s in self.stations],
            tracks=[t.model_copy(deep=True) for t in self.tracks],
            conflicts=[c.model_copy(deep=True) for c in self.conflicts],
        )


def load_section(path: Optional[str] = None) -> SectionSnapshot:
    """
    Read a snapshot file, the bundled sample section when ``path`` is None.

    Raises DatasetError when the file is not a valid snapshot; a missing
    file raises FileNotFoundError as usual.
    """
    path = Path(path) if path else SAMPLE_SECTION
    with open(path, "rb") as f:
        raw = f.read()

    try:
        snapshot = SectionSnapshot.model_validate_json(raw)
    except ValidationError as e:
        raise DatasetError(f"Invalid section snapshot {path}: {e}") from e

    logger.info(
        f"Loaded section {path.name}: {len(snapshot.stations)} stations, "
        f"{len(snapshot.tracks)} tracks, {len(snapshot.trains)} trains"
    )
    return snapshot
