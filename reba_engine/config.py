# config.py (REBA scoring constants and service settings)
import logging
import os
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field

# --- Landmark detection ---
MIN_VISIBILITY_THRESHOLD = 0.3 # visibility below this means "not detected"

# --- Exposure accumulator ---
CHANGE_THRESHOLD_DEG = 5.0 # angle jump counted as a movement event

# --- Posture flag heuristics (normalized image units / degrees) ---
TWIST_Y_THRESHOLD = 0.05 # ear or shoulder height difference
NOSE_OFFSET_THRESHOLD = 0.05 # nose x vs mid-shoulder x
SHOULDER_RAISE_THRESHOLD = 0.05 # shoulder.y - hip.y
ARM_SUPPORT_DISTANCE = 0.05 # elbow-shoulder distance
ARM_ABDUCTION_DEG = 20.0
WRIST_BEND_DEG = 15.0
WRIST_TWIST_DEG = 15.0

# --- Composer heuristics ---
FORCE_FREQUENCY_PER_MIN = 10.0 # sudden movements add +1 to force/load
ACTIVITY_FREQUENCY_PER_MIN = 4.0 # repeated movements
ACTIVITY_EXPOSURE_SECONDS = 60.0 # static posture held longer than a minute
MAX_FORCE_LOAD_SCORE = 2

# --- Cervical angle feedback ---
NECK_CAUTION_DEG = 8.0
NECK_ALERT_DEG = 15.0

CONFIG_ENV_VAR = "REBA_CONFIG"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class ServiceSettings(BaseModel):
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost", "http://127.0.0.1"])
    log_level: str = "INFO"
    max_sessions: int = Field(default=64, ge=1)
    default_force_load: int = Field(default=0, ge=0, le=MAX_FORCE_LOAD_SCORE)


def load_settings(path: Optional[str] = None) -> ServiceSettings:
    """Load service settings from YAML; falls back to defaults when no file is found."""
    path = path or os.environ.get(CONFIG_ENV_VAR)
    if not path or not os.path.exists(path):
        return ServiceSettings()

    with open(path, "r") as file:
        try:
            data = yaml.safe_load(file) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Failed to parse config {path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Config {path} must contain a mapping, got {type(data).__name__}")
    return ServiceSettings(**data)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
