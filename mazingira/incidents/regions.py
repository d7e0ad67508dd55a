from __future__ import annotations

import random
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Tuple

from ..shared.models import Location

# Nairobi; used when a region has no coordinates of its own.
DEFAULT_CENTER: Tuple[float, float] = (-1.286389, 36.817223)
JITTER_DEGREES = 0.1


@dataclass(frozen=True)
class RegionVitals:
    name: str
    crimes: int
    health: int
    threats: int
    ecosystem: str
    status: str
    lat: float
    lng: float

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


REGIONAL_VITALS: Tuple[RegionVitals, ...] = (
    RegionVitals("Mau Forest", 12, 85, 4, "Tropical Montane", "High Risk", -0.55, 35.75),
    RegionVitals("Mt Kenya", 4, 92, 1, "Alpine/Forest", "Stable", -0.15, 37.31),
    RegionVitals("Maasai Mara", 18, 78, 7, "Savannah/Riparian", "Critical", -1.49, 35.14),
    RegionVitals("Tsavo East", 15, 72, 6, "Semi-Arid Bushland", "Critical", -2.99, 38.47),
    RegionVitals("Tana River", 7, 65, 3, "Riverine/Wetland", "At Risk", -1.85, 40.13),
    RegionVitals("Aberdares", 2, 95, 0, "Cloud Forest", "Pristine", -0.41, 36.70),
    RegionVitals("Arabuko Sokoke", 5, 88, 2, "Coastal Forest", "Monitored", -3.31, 39.87),
)

DEFAULT_REGION = REGIONAL_VITALS[0].name


def find_region(name: str) -> Optional[RegionVitals]:
    for r in REGIONAL_VITALS:
        if r.name.lower() == (name or "").strip().lower():
            return r
    return None


def list_regions() -> List[Dict[str, object]]:
    return [r.to_dict() for r in REGIONAL_VITALS]


def jittered_location(region: str, rng: Optional[random.Random] = None) -> Location:
    rng = rng or random.Random()
    vitals = find_region(region)
    lat, lng = (vitals.lat, vitals.lng) if vitals else DEFAULT_CENTER
    return Location(
        lat=lat + (rng.random() - 0.5) * JITTER_DEGREES,
        lng=lng + (rng.random() - 0.5) * JITTER_DEGREES,
        region=region,
    )
