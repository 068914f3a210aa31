# landmarks.py (MediaPipe landmark model and detection helpers)
import math
from typing import Any, Optional, Sequence

from pydantic import BaseModel

from .config import MIN_VISIBILITY_THRESHOLD

# --- Mediapipe Pose Landmark Indices ---
# (https://google.github.io/mediapipe/solutions/pose.html#pose-landmark-model-card)
NOSE = 0
LEFT_EYE_INNER = 1
LEFT_EYE = 2
LEFT_EYE_OUTER = 3
RIGHT_EYE_INNER = 4
RIGHT_EYE = 5
RIGHT_EYE_OUTER = 6
LEFT_EAR = 7
RIGHT_EAR = 8
MOUTH_LEFT = 9
MOUTH_RIGHT = 10
LEFT_SHOULDER = 11
RIGHT_SHOULDER = 12
LEFT_ELBOW = 13
RIGHT_ELBOW = 14
LEFT_WRIST = 15
RIGHT_WRIST = 16
LEFT_PINKY = 17
RIGHT_PINKY = 18
LEFT_INDEX = 19
RIGHT_INDEX = 20
LEFT_THUMB = 21
RIGHT_THUMB = 22
LEFT_HIP = 23
RIGHT_HIP = 24
LEFT_KNEE = 25
RIGHT_KNEE = 26
LEFT_ANKLE = 27
RIGHT_ANKLE = 28
LEFT_HEEL = 29
RIGHT_HEEL = 30
LEFT_FOOT_INDEX = 31
RIGHT_FOOT_INDEX = 32

NUM_POSE_LANDMARKS = 33


class Landmark(BaseModel):
    x: Optional[float] = None
    y: Optional[float] = None
    z: Optional[float] = None # depth is never used
    visibility: Optional[float] = None


class Point(BaseModel):
    x: float
    y: float


def is_number(value: Any) -> bool:
    """ True for finite int/float values (bool excluded) """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def is_landmark_detected(lm: Optional[Landmark], threshold: float = MIN_VISIBILITY_THRESHOLD) -> bool:
    if lm is None:
        return False
    if is_number(lm.visibility):
        return lm.visibility >= threshold
    # No usable visibility: trust the coordinates alone
    return is_number(lm.x) and is_number(lm.y)


def get_landmark(landmarks: Sequence[Landmark], index: int) -> Optional[Landmark]:
    """ Return the landmark at index when it is detected, else None """
    if 0 <= index < len(landmarks):
        lm = landmarks[index]
        # A visible point with unusable coordinates is of no use to the geometry
        if is_landmark_detected(lm) and is_number(lm.x) and is_number(lm.y):
            return lm
    return None


def midpoint(a: Landmark, b: Landmark) -> Point:
    return Point(x=(a.x + b.x) / 2, y=(a.y + b.y) / 2)


def get_mid_shoulder(landmarks: Sequence[Landmark]) -> Optional[Point]:
    left = get_landmark(landmarks, LEFT_SHOULDER)
    right = get_landmark(landmarks, RIGHT_SHOULDER)
    if left is None or right is None:
        return None
    return midpoint(left, right)


def get_mid_hip(landmarks: Sequence[Landmark]) -> Optional[Point]:
    left = get_landmark(landmarks, LEFT_HIP)
    right = get_landmark(landmarks, RIGHT_HIP)
    if left is None or right is None:
        return None
    return midpoint(left, right)


def select_head_reference(landmarks: Sequence[Landmark]) -> Optional[Landmark]:
    """Pick the landmark used as the head end of the neck vector.

    Prefers the more visible ear when both ears report a numeric visibility and
    at least one clears the threshold (the right ear wins a tie). Otherwise the
    nose, then the first detected of left ear, right ear, nose.
    """
    left_ear = landmarks[LEFT_EAR] if LEFT_EAR < len(landmarks) else None
    right_ear = landmarks[RIGHT_EAR] if RIGHT_EAR < len(landmarks) else None

    if left_ear is not None and right_ear is not None \
            and is_number(left_ear.visibility) and is_number(right_ear.visibility) \
            and max(left_ear.visibility, right_ear.visibility) >= MIN_VISIBILITY_THRESHOLD:
        ear = left_ear if left_ear.visibility > right_ear.visibility else right_ear
        # Only the better ear is guaranteed to clear the visibility threshold
        if is_number(ear.x) and is_number(ear.y):
            return ear

    nose = get_landmark(landmarks, NOSE)
    if nose is not None:
        return nose

    for index in (LEFT_EAR, RIGHT_EAR, NOSE):
        lm = get_landmark(landmarks, index)
        if lm is not None:
            return lm
    return None
