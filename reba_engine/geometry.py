# geometry.py (2D joint angles and posture flags from one frame of landmarks)
import math
from enum import Enum
from typing import Dict, Optional, Sequence, Union

from pydantic import BaseModel

from .config import (
    ARM_ABDUCTION_DEG,
    ARM_SUPPORT_DISTANCE,
    NOSE_OFFSET_THRESHOLD,
    SHOULDER_RAISE_THRESHOLD,
    TWIST_Y_THRESHOLD,
    WRIST_BEND_DEG,
    WRIST_TWIST_DEG,
)
from .landmarks import (
    LEFT_EAR, RIGHT_EAR, NOSE,
    LEFT_SHOULDER, RIGHT_SHOULDER,
    LEFT_ELBOW, RIGHT_ELBOW,
    LEFT_WRIST, RIGHT_WRIST,
    LEFT_INDEX, RIGHT_INDEX,
    LEFT_HIP, RIGHT_HIP,
    LEFT_KNEE, RIGHT_KNEE,
    Landmark,
    Point,
    get_landmark,
    get_mid_hip,
    get_mid_shoulder,
    select_head_reference,
)

PointLike = Union[Landmark, Point]

# Image coordinates: Y grows downwards
VERTICAL_UP = {"x": 0.0, "y": -1.0}
VERTICAL_DOWN = {"x": 0.0, "y": 1.0}


class LegPosture(str, Enum):
    BILATERAL = "bilateral" # stable stance (default)
    UNILATERAL = "unilateral" # proxy for unstable stance


class AngleSet(BaseModel):
    neck: Optional[float] = None
    trunk: Optional[float] = None
    left_elbow: Optional[float] = None
    right_elbow: Optional[float] = None
    left_upper_arm: Optional[float] = None
    right_upper_arm: Optional[float] = None
    left_forearm: Optional[float] = None
    right_forearm: Optional[float] = None
    left_wrist: Optional[float] = None
    right_wrist: Optional[float] = None
    left_leg: Optional[float] = None
    right_leg: Optional[float] = None


class PostureFlags(BaseModel):
    # None: not computable from this frame
    neck_twisted: Optional[bool] = None
    trunk_twisted: Optional[bool] = None
    shoulder_raised: Optional[bool] = None
    arm_abducted: Optional[bool] = None
    arm_supported: Optional[bool] = None
    wrist_bent: Optional[bool] = None
    wrist_twisted: Optional[bool] = None
    leg_posture: Optional[LegPosture] = None


# --- Helper Functions for Vector and Angle Calculations ---

def calculate_vector_2d(p1: PointLike, p2: PointLike) -> Dict[str, float]:
    return {"x": p2.x - p1.x, "y": p2.y - p1.y}

def vector_magnitude_2d(v: Dict[str, float]) -> float:
    return math.sqrt(v["x"]**2 + v["y"]**2)

def dot_product_2d(v1: Dict[str, float], v2: Dict[str, float]) -> float:
    return v1["x"] * v2["x"] + v1["y"] * v2["y"]

def distance_2d(p1: PointLike, p2: PointLike) -> float:
    return vector_magnitude_2d(calculate_vector_2d(p1, p2))


def signed_angle_from_axis(p1: PointLike, p2: PointLike, axis: Dict[str, float]) -> float:
    """ Angle (deg) between vector p1->p2 and a unit axis, negative when the vector points left """
    vec = calculate_vector_2d(p1, p2)
    mag = vector_magnitude_2d(vec)
    if mag < 1e-9:
        return 0.0

    cos_theta = dot_product_2d(vec, axis) / mag
    cos_theta = max(-1.0, min(1.0, cos_theta)) # float error can push past +/-1
    angle_deg = math.degrees(math.acos(cos_theta))
    return -angle_deg if vec["x"] < 0 else angle_deg

def find_angle(p1: PointLike, p2: PointLike) -> float:
    """ Deviation of p1->p2 from upright (trunk, neck); 0 is vertical """
    return abs(signed_angle_from_axis(p1, p2, VERTICAL_UP))

def find_angle_for_limbs(p1: PointLike, p2: PointLike) -> float:
    """ Deviation of p1->p2 from hanging straight down (arm, forearm, wrist, leg) """
    return abs(signed_angle_from_axis(p1, p2, VERTICAL_DOWN))

def calculate_angle_3points_2d(p_center: PointLike, p_a: PointLike, p_b: PointLike) -> float:
    """ Interior joint angle at p_center; 180 (fully extended) when a segment has no length """
    v_ca = calculate_vector_2d(p_center, p_a)
    v_cb = calculate_vector_2d(p_center, p_b)
    mag_ca = vector_magnitude_2d(v_ca)
    mag_cb = vector_magnitude_2d(v_cb)
    if mag_ca < 1e-9 or mag_cb < 1e-9:
        return 180.0

    cos_theta = dot_product_2d(v_ca, v_cb) / (mag_ca * mag_cb)
    cos_theta = max(-1.0, min(1.0, cos_theta))
    return math.degrees(math.acos(cos_theta))


# --- Angles ---

def _limb_angle(landmarks: Sequence[Landmark], start: int, end: int) -> Optional[float]:
    p1 = get_landmark(landmarks, start)
    p2 = get_landmark(landmarks, end)
    if p1 is None or p2 is None:
        return None
    return find_angle_for_limbs(p1, p2)

def _elbow_angle(landmarks: Sequence[Landmark], shoulder: int, elbow: int, wrist: int) -> Optional[float]:
    s = get_landmark(landmarks, shoulder)
    e = get_landmark(landmarks, elbow)
    w = get_landmark(landmarks, wrist)
    if s is None or e is None or w is None:
        return None
    return calculate_angle_3points_2d(e, s, w)

def compute_neck_angle(landmarks: Sequence[Landmark]) -> Optional[float]:
    mid_shoulder = get_mid_shoulder(landmarks)
    head = select_head_reference(landmarks)
    if mid_shoulder is None or head is None:
        return None
    return find_angle(mid_shoulder, head)

def compute_trunk_angle(landmarks: Sequence[Landmark]) -> Optional[float]:
    mid_shoulder = get_mid_shoulder(landmarks)
    mid_hip = get_mid_hip(landmarks)
    if mid_shoulder is None or mid_hip is None:
        return None
    return find_angle(mid_hip, mid_shoulder)

def compute_angles(landmarks: Sequence[Landmark]) -> AngleSet:
    """Derive every angle available in this frame.

    Each angle is computed independently; a missing landmark only nulls the
    angles that depend on it.
    """
    return AngleSet(
        neck=compute_neck_angle(landmarks),
        trunk=compute_trunk_angle(landmarks),
        left_elbow=_elbow_angle(landmarks, LEFT_SHOULDER, LEFT_ELBOW, LEFT_WRIST),
        right_elbow=_elbow_angle(landmarks, RIGHT_SHOULDER, RIGHT_ELBOW, RIGHT_WRIST),
        left_upper_arm=_limb_angle(landmarks, LEFT_SHOULDER, LEFT_ELBOW),
        right_upper_arm=_limb_angle(landmarks, RIGHT_SHOULDER, RIGHT_ELBOW),
        left_forearm=_limb_angle(landmarks, LEFT_ELBOW, LEFT_WRIST),
        right_forearm=_limb_angle(landmarks, RIGHT_ELBOW, RIGHT_WRIST),
        left_wrist=_limb_angle(landmarks, LEFT_WRIST, LEFT_INDEX),
        right_wrist=_limb_angle(landmarks, RIGHT_WRIST, RIGHT_INDEX),
        left_leg=_limb_angle(landmarks, LEFT_HIP, LEFT_KNEE),
        right_leg=_limb_angle(landmarks, RIGHT_HIP, RIGHT_KNEE),
    )


# --- Posture flags ---

def detect_leg_posture(landmarks: Sequence[Landmark]) -> Optional[LegPosture]:
    # 2D height-ordering proxy: no foot detection is available.
    # Both knees below their hips is treated as the unstable stance.
    left_hip = get_landmark(landmarks, LEFT_HIP)
    right_hip = get_landmark(landmarks, RIGHT_HIP)
    left_knee = get_landmark(landmarks, LEFT_KNEE)
    right_knee = get_landmark(landmarks, RIGHT_KNEE)
    if None in (left_hip, right_hip, left_knee, right_knee):
        return None
    if left_knee.y > left_hip.y and right_knee.y > right_hip.y:
        return LegPosture.UNILATERAL
    return LegPosture.BILATERAL

def detect_neck_twist(landmarks: Sequence[Landmark]) -> Optional[bool]:
    left_ear = get_landmark(landmarks, LEFT_EAR)
    right_ear = get_landmark(landmarks, RIGHT_EAR)
    if left_ear is not None and right_ear is not None:
        return abs(left_ear.y - right_ear.y) > TWIST_Y_THRESHOLD

    nose = get_landmark(landmarks, NOSE)
    mid_shoulder = get_mid_shoulder(landmarks)
    if nose is not None and mid_shoulder is not None:
        return abs(nose.x - mid_shoulder.x) > NOSE_OFFSET_THRESHOLD
    return None

def detect_trunk_twist(landmarks: Sequence[Landmark]) -> Optional[bool]:
    left = get_landmark(landmarks, LEFT_SHOULDER)
    right = get_landmark(landmarks, RIGHT_SHOULDER)
    if left is None or right is None:
        return None
    return abs(left.y - right.y) > TWIST_Y_THRESHOLD

def detect_shoulder_raised(landmarks: Sequence[Landmark]) -> Optional[bool]:
    for shoulder_idx, hip_idx in ((LEFT_SHOULDER, LEFT_HIP), (RIGHT_SHOULDER, RIGHT_HIP)):
        shoulder = get_landmark(landmarks, shoulder_idx)
        hip = get_landmark(landmarks, hip_idx)
        if shoulder is not None and hip is not None:
            return shoulder.y - hip.y > SHOULDER_RAISE_THRESHOLD
    return None

def detect_arm_supported(landmarks: Sequence[Landmark]) -> Optional[bool]:
    # Elbow tucked close to the shoulder is read as "resting on a surface"
    for shoulder_idx, elbow_idx in ((LEFT_SHOULDER, LEFT_ELBOW), (RIGHT_SHOULDER, RIGHT_ELBOW)):
        shoulder = get_landmark(landmarks, shoulder_idx)
        elbow = get_landmark(landmarks, elbow_idx)
        if shoulder is not None and elbow is not None:
            return distance_2d(elbow, shoulder) < ARM_SUPPORT_DISTANCE
    return None

def detect_wrist_twist(landmarks: Sequence[Landmark]) -> Optional[bool]:
    for wrist_idx, index_idx in ((LEFT_WRIST, LEFT_INDEX), (RIGHT_WRIST, RIGHT_INDEX)):
        wrist = get_landmark(landmarks, wrist_idx)
        index = get_landmark(landmarks, index_idx)
        if wrist is not None and index is not None:
            return find_angle_for_limbs(wrist, index) > WRIST_TWIST_DEG
    return None

def _any_exceeds(threshold: float, *angles: Optional[float]) -> Optional[bool]:
    present = [a for a in angles if a is not None]
    if not present:
        return None
    return any(a > threshold for a in present)

def compute_flags(landmarks: Sequence[Landmark], angles: AngleSet) -> PostureFlags:
    return PostureFlags(
        neck_twisted=detect_neck_twist(landmarks),
        trunk_twisted=detect_trunk_twist(landmarks),
        shoulder_raised=detect_shoulder_raised(landmarks),
        arm_abducted=_any_exceeds(ARM_ABDUCTION_DEG, angles.left_upper_arm, angles.right_upper_arm),
        arm_supported=detect_arm_supported(landmarks),
        wrist_bent=_any_exceeds(WRIST_BEND_DEG, angles.left_wrist, angles.right_wrist),
        wrist_twisted=detect_wrist_twist(landmarks),
        leg_posture=detect_leg_posture(landmarks),
    )
