# scoring.py (final REBA score composition and risk classification)
import logging
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel

from .config import (
    ACTIVITY_EXPOSURE_SECONDS,
    ACTIVITY_FREQUENCY_PER_MIN,
    FORCE_FREQUENCY_PER_MIN,
    MAX_FORCE_LOAD_SCORE,
    NECK_ALERT_DEG,
    NECK_CAUTION_DEG,
)
from .exposure import Segment, SegmentExposure
from .landmarks import is_number
from .tables import get_table_c_score, score_group_a, score_group_b

logger = logging.getLogger(__name__)

POOR_COUPLING_SCORE = 2
GOOD_COUPLING_SCORE = 0


class RiskLevel(str, Enum):
    NEGLIGIBLE = "negligible"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very high"


# (highest score in band, level)
RISK_THRESHOLDS = (
    (1, RiskLevel.NEGLIGIBLE),
    (3, RiskLevel.LOW),
    (7, RiskLevel.MEDIUM),
    (10, RiskLevel.HIGH),
)

RISK_ACTIONS = {
    RiskLevel.NEGLIGIBLE: "Negligible risk, no action required",
    RiskLevel.LOW: "Low risk, changes may be implemented",
    RiskLevel.MEDIUM: "Medium risk, investigate further and implement changes",
    RiskLevel.HIGH: "High risk, investigate and implement changes",
    RiskLevel.VERY_HIGH: "Very high risk, implement changes immediately",
}


class NeckStatus(str, Enum):
    OK = "ok"
    CAUTION = "caution"
    ALERT = "alert"


class RebaFlags(BaseModel):
    neck_twisted: bool = False
    trunk_twisted: bool = False
    shoulder_raised: bool = False
    arm_abducted: bool = False
    arm_supported: bool = False
    wrist_bent: bool = False
    wrist_twisted: bool = False


class CompositeScore(BaseModel):
    posture_score_a: int = 0
    posture_score_b: int = 0
    table_c_score: int = 0
    force_load_score: int = 0
    coupling_score: int = 0
    activity_score: int = 0
    reba_score_final: int = 0
    risk_level: RiskLevel = RiskLevel.NEGLIGIBLE


def get_risk_level(score: int) -> RiskLevel:
    for upper, level in RISK_THRESHOLDS:
        if score <= upper:
            return level
    return RiskLevel.VERY_HIGH

def get_risk_action(level: RiskLevel) -> str:
    return RISK_ACTIONS[level]


def get_neck_status(neck_angle: Optional[float]) -> Optional[NeckStatus]:
    """ Live feedback on the current cervical deviation (0 is upright) """
    if neck_angle is None:
        return None
    if abs(neck_angle) > NECK_ALERT_DEG:
        return NeckStatus.ALERT
    if abs(neck_angle) > NECK_CAUTION_DEG:
        return NeckStatus.CAUTION
    return NeckStatus.OK


def calc_force_load_score(base: int, trunk: SegmentExposure, neck: SegmentExposure) -> int:
    # Frequent large trunk/neck movements stand in for shock or rapid force
    adjustment = 1 if trunk.frequency > FORCE_FREQUENCY_PER_MIN or neck.frequency > FORCE_FREQUENCY_PER_MIN else 0
    return min(base + adjustment, MAX_FORCE_LOAD_SCORE)

def calc_coupling_score(wrist_bent: bool, wrist_twisted: bool) -> int:
    # Binary grip proxy: REBA's intermediate "fair" coupling is never produced
    return POOR_COUPLING_SCORE if wrist_bent or wrist_twisted else GOOD_COUPLING_SCORE

def calc_activity_score(trunk: SegmentExposure, neck: SegmentExposure) -> int:
    held = trunk.exposure_time > ACTIVITY_EXPOSURE_SECONDS or neck.exposure_time > ACTIVITY_EXPOSURE_SECONDS
    repeated = trunk.frequency > ACTIVITY_FREQUENCY_PER_MIN or neck.frequency > ACTIVITY_FREQUENCY_PER_MIN
    return 1 if held or repeated else 0


def _as_score(value: Any, name: str) -> int:
    """ Replace a non-numeric intermediate by 0 instead of carrying it into the total """
    if not is_number(value):
        logger.warning("%s is not a valid number (%r), defaulting to 0", name, value)
        return 0
    return int(value)


def compose(segments: Mapping[Segment, SegmentExposure], flags: RebaFlags, force_load_base: int) -> CompositeScore:
    """Combine segment scores, flags and the force/load input into the final REBA score.

    Steps follow the REBA worksheet: Table A (neck, trunk, legs), Table B
    (upper arm, forearm, wrist), Table C, then force/load, coupling and
    activity are added on top of the Table C score.
    """
    trunk = segments[Segment.TRUNK]
    neck = segments[Segment.NECK]

    posture_score_a = _as_score(score_group_a(
        neck.score, trunk.score, segments[Segment.LEGS].score,
        flags.neck_twisted, flags.trunk_twisted,
    ), "posture_score_a")
    posture_score_b = _as_score(score_group_b(
        segments[Segment.ARM].score, segments[Segment.FOREARM].score, segments[Segment.WRIST].score,
        flags.shoulder_raised, flags.arm_abducted, flags.arm_supported,
        flags.wrist_bent, flags.wrist_twisted,
    ), "posture_score_b")
    table_c_score = _as_score(get_table_c_score(posture_score_a, posture_score_b), "table_c_score")

    force_load_score = calc_force_load_score(force_load_base, trunk, neck)
    coupling_score = calc_coupling_score(flags.wrist_bent, flags.wrist_twisted)
    activity_score = calc_activity_score(trunk, neck)

    reba_score_final = table_c_score + force_load_score + coupling_score + activity_score
    risk_level = get_risk_level(reba_score_final)
    logger.debug("REBA: C=%s force=%s coupling=%s activity=%s -> %s (%s)",
                 table_c_score, force_load_score, coupling_score, activity_score,
                 reba_score_final, risk_level.value)

    return CompositeScore(
        posture_score_a=posture_score_a,
        posture_score_b=posture_score_b,
        table_c_score=table_c_score,
        force_load_score=force_load_score,
        coupling_score=coupling_score,
        activity_score=activity_score,
        reba_score_final=reba_score_final,
        risk_level=risk_level,
    )
