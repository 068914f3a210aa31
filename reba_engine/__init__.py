from .exposure import Segment, SegmentExposure, UnknownBinError, advance
from .geometry import AngleSet, LegPosture, PostureFlags, compute_angles, compute_flags
from .landmarks import Landmark, Point, is_landmark_detected
from .scoring import RiskLevel, compose, get_risk_level
from .session import RebaSession, RebaSessionState, RebaSnapshot, process_frame

__version__ = "0.1.0"
