# exposure.py (time-in-posture histograms per body segment)
import logging
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, NamedTuple, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

from .config import CHANGE_THRESHOLD_DEG
from .geometry import LegPosture
from .landmarks import is_number

logger = logging.getLogger(__name__)


class Segment(str, Enum):
    TRUNK = "trunk"
    NECK = "neck"
    LEGS = "legs"
    ARM = "arm"
    FOREARM = "forearm"
    WRIST = "wrist"


class AngleBin(NamedTuple):
    label: str
    upper: Optional[float] # inclusive upper bound in degrees, None = open-ended
    score: int


class UnknownBinError(KeyError):
    """A bin label outside a segment's declared table; always a programming error."""


# REBA worksheet ranges -> sub-score. The order is the tie-break order.
_FLEXION_BINS = (
    AngleBin("0-20", 20.0, 1),
    AngleBin("21-60", 60.0, 2),
    AngleBin("61+", None, 3),
)

REBA_ANGLE_BINS: Mapping[Segment, Tuple[AngleBin, ...]] = MappingProxyType({
    Segment.TRUNK: _FLEXION_BINS,
    Segment.NECK: (
        AngleBin("0-20", 20.0, 1),
        AngleBin("21+", None, 2),
    ),
    # Legs are binned by posture, not by angle
    Segment.LEGS: (
        AngleBin(LegPosture.BILATERAL.value, None, 1),
        AngleBin(LegPosture.UNILATERAL.value, None, 2),
    ),
    Segment.ARM: _FLEXION_BINS,
    Segment.FOREARM: _FLEXION_BINS,
    Segment.WRIST: _FLEXION_BINS,
})


def bin_labels(segment: Segment) -> Tuple[str, ...]:
    return tuple(b.label for b in REBA_ANGLE_BINS[segment])

def bin_score(segment: Segment, label: str) -> int:
    for b in REBA_ANGLE_BINS[segment]:
        if b.label == label:
            return b.score
    raise UnknownBinError(f"{label!r} is not a {segment.value} bin")

def classify_angle(segment: Segment, angle: float) -> str:
    """ Map an angle onto exactly one of the segment's bins """
    if segment is Segment.LEGS:
        raise ValueError("legs are classified by posture, not by angle")
    abs_angle = abs(angle)
    for b in REBA_ANGLE_BINS[segment]:
        if b.upper is None or abs_angle <= b.upper:
            return b.label
    raise UnknownBinError(f"no {segment.value} bin for {angle}") # tables end open-ended

def score_from_bins(segment: Segment, bins: Mapping[str, float]) -> int:
    """Score of the bin with the most accumulated time.

    Ties keep the first bin in table order; 0 while no time has accumulated.
    """
    max_time = 0.0
    score_for_max_time = 0
    for b in REBA_ANGLE_BINS[segment]:
        if b.label not in bins:
            raise UnknownBinError(f"{segment.value} bins are missing {b.label!r}")
        if bins[b.label] > max_time:
            max_time = bins[b.label]
            score_for_max_time = b.score
    return score_for_max_time


class SegmentExposure(BaseModel):
    segment: Segment
    angle: Optional[float] = None # last known absolute angle
    exposure_time: float = 0.0 # seconds observed
    frequency: float = 0.0 # events per minute
    last_change_time: float = 0.0
    event_count: int = 0
    score: int = 0
    exposure_time_bins: Dict[str, float] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _seed_bins(self) -> "SegmentExposure":
        declared = bin_labels(self.segment)
        unknown = set(self.exposure_time_bins) - set(declared)
        if unknown:
            raise ValueError(f"Unknown {self.segment.value} bins: {sorted(unknown)}")
        for label in declared:
            self.exposure_time_bins.setdefault(label, 0.0)
        return self


def reduce_pair(left: Optional[float], right: Optional[float]) -> Optional[float]:
    """ One representative angle for a left/right pair """
    if left is not None and right is not None:
        return (abs(left) + abs(right)) / 2
    if left is not None:
        return abs(left)
    if right is not None:
        return abs(right)
    return None


def advance(exposure: SegmentExposure, new_angle: Optional[float], elapsed: float, now: float,
            bin_label: Optional[str] = None) -> SegmentExposure:
    """Fold one frame into a segment's exposure record (in place).

    ``bin_label`` overrides angle classification; the legs segment always
    passes its posture label here.
    """
    if new_angle is None or not is_number(new_angle):
        # Lost landmark: keep the history, only the current angle is unknown
        exposure.angle = None
        exposure.score = score_from_bins(exposure.segment, exposure.exposure_time_bins)
        return exposure

    if not is_number(elapsed) or elapsed < 0:
        logger.warning("Invalid frame delta %r for %s treated as 0", elapsed, exposure.segment.value)
        elapsed = 0.0

    current_angle = abs(new_angle)
    previous = exposure.angle if exposure.angle is not None else current_angle
    if abs(current_angle - previous) > CHANGE_THRESHOLD_DEG:
        exposure.event_count += 1
        exposure.last_change_time = now

    exposure.exposure_time += elapsed

    if bin_label is None:
        bin_label = classify_angle(exposure.segment, current_angle)
    if bin_label not in exposure.exposure_time_bins:
        raise UnknownBinError(f"{bin_label!r} is not a {exposure.segment.value} bin")
    exposure.exposure_time_bins[bin_label] += elapsed

    minutes = exposure.exposure_time / 60
    exposure.frequency = exposure.event_count / minutes if minutes > 0 else 0.0

    exposure.angle = current_angle
    exposure.score = score_from_bins(exposure.segment, exposure.exposure_time_bins)
    return exposure
