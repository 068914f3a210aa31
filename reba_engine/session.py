# session.py (per-session REBA state and the frame-by-frame pipeline)
import logging
import uuid
from typing import Dict, Optional, Sequence

from pydantic import BaseModel, Field

from .config import MAX_FORCE_LOAD_SCORE
from .exposure import Segment, SegmentExposure, advance, reduce_pair
from .geometry import AngleSet, LegPosture, PostureFlags, compute_angles, compute_flags
from .landmarks import Landmark, is_number
from .scoring import (
    NeckStatus,
    RebaFlags,
    RiskLevel,
    compose,
    get_neck_status,
    get_risk_action,
)

logger = logging.getLogger(__name__)


def _new_segments() -> Dict[Segment, SegmentExposure]:
    return {segment: SegmentExposure(segment=segment) for segment in Segment}


class RebaSessionState(BaseModel):
    segments: Dict[Segment, SegmentExposure] = Field(default_factory=_new_segments)
    flags: RebaFlags = Field(default_factory=RebaFlags)
    force_load_base: int = Field(default=0, ge=0, le=MAX_FORCE_LOAD_SCORE) # user input
    force_load_score: int = 0
    coupling_score: int = 0
    activity_score: int = 0
    posture_score_a: int = 0
    posture_score_b: int = 0
    table_c_score: int = 0
    reba_score_final: int = 0
    risk_level: RiskLevel = RiskLevel.NEGLIGIBLE
    angles: AngleSet = Field(default_factory=AngleSet) # last frame
    frame_count: int = 0
    elapsed_time: float = 0.0
    last_timestamp: Optional[float] = None

    def segment(self, segment: Segment) -> SegmentExposure:
        return self.segments[segment]


class RebaSnapshot(RebaSessionState):
    session_id: Optional[str] = None
    risk_action: str = ""
    neck_status: Optional[NeckStatus] = None


def validate_force_load(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= MAX_FORCE_LOAD_SCORE:
        raise ValueError(f"Force/load score must be an integer between 0 and {MAX_FORCE_LOAD_SCORE}, got {value!r}")
    return value


def representative_angles(angles: AngleSet) -> Dict[Segment, Optional[float]]:
    """ One angle per segment; left/right pairs are averaged """
    return {
        Segment.TRUNK: angles.trunk,
        Segment.NECK: angles.neck,
        Segment.LEGS: reduce_pair(angles.left_leg, angles.right_leg),
        Segment.ARM: reduce_pair(angles.left_upper_arm, angles.right_upper_arm),
        Segment.FOREARM: reduce_pair(angles.left_forearm, angles.right_forearm),
        Segment.WRIST: reduce_pair(angles.left_wrist, angles.right_wrist),
    }


def _apply_flags(current: RebaFlags, frame_flags: PostureFlags) -> None:
    # A flag that cannot be computed this frame keeps its previous value
    for name in RebaFlags.model_fields:
        value = getattr(frame_flags, name)
        if value is not None:
            setattr(current, name, value)


def process_frame(state: RebaSessionState, landmarks: Sequence[Landmark], elapsed: float,
                  now: float) -> RebaSessionState:
    """Run one full pipeline pass (geometry, exposure, tables, composition) in place."""
    if not is_number(elapsed) or elapsed < 0:
        logger.warning("Invalid frame delta %r treated as 0", elapsed)
        elapsed = 0.0

    angles = compute_angles(landmarks)
    frame_flags = compute_flags(landmarks, angles)

    leg_bin = (frame_flags.leg_posture or LegPosture.BILATERAL).value
    for segment, angle in representative_angles(angles).items():
        advance(state.segment(segment), angle, elapsed, now,
                bin_label=leg_bin if segment is Segment.LEGS else None)

    _apply_flags(state.flags, frame_flags)

    scores = compose(state.segments, state.flags, state.force_load_base)
    state.posture_score_a = scores.posture_score_a
    state.posture_score_b = scores.posture_score_b
    state.table_c_score = scores.table_c_score
    state.force_load_score = scores.force_load_score
    state.coupling_score = scores.coupling_score
    state.activity_score = scores.activity_score
    state.reba_score_final = scores.reba_score_final
    state.risk_level = scores.risk_level

    state.angles = angles
    state.frame_count += 1
    state.elapsed_time += elapsed
    return state


def build_snapshot(state: RebaSessionState, session_id: Optional[str] = None) -> RebaSnapshot:
    return RebaSnapshot(
        **state.model_dump(),
        session_id=session_id,
        risk_action=get_risk_action(state.risk_level),
        neck_status=get_neck_status(state.angles.neck),
    )


class RebaSession:
    """One analysis session (one video or camera stream).

    Owns its state exclusively; concurrent streams each need their own
    session.
    """

    def __init__(self, force_load: int = 0, session_id: Optional[str] = None):
        self.session_id = session_id or uuid.uuid4().hex
        self.state = RebaSessionState(force_load_base=validate_force_load(force_load))

    def set_force_load(self, force_load: int) -> None:
        self.state.force_load_base = validate_force_load(force_load)

    def update(self, landmarks: Sequence[Landmark], timestamp: Optional[float] = None,
               elapsed: Optional[float] = None) -> RebaSessionState:
        """Process one frame.

        Either ``elapsed`` (seconds since the previous frame) or ``timestamp``
        (seconds, any origin) must be given. The first timestamped frame
        contributes no exposure time.
        """
        if timestamp is not None and not is_number(timestamp):
            logger.warning("Ignoring invalid timestamp %r in session %s", timestamp, self.session_id)
            timestamp = None
            if elapsed is None:
                elapsed = 0.0
        if elapsed is None:
            if timestamp is None:
                raise ValueError("Either timestamp or elapsed is required")
            last = self.state.last_timestamp
            elapsed = 0.0 if last is None else timestamp - last
        if timestamp is not None:
            now = timestamp
            self.state.last_timestamp = timestamp
        else:
            now = self.state.elapsed_time + (elapsed if is_number(elapsed) and elapsed > 0 else 0.0)
        return process_frame(self.state, landmarks, elapsed, now)

    def reset(self) -> None:
        """ Start over (new video); the force/load input is kept """
        logger.info("Resetting REBA session %s", self.session_id)
        self.state = RebaSessionState(force_load_base=self.state.force_load_base)

    def snapshot(self) -> RebaSnapshot:
        return build_snapshot(self.state, self.session_id)
