# tables.py (REBA Table A, B, C lookups and posture adjustments)
import logging
from typing import Tuple

logger = logging.getLogger(__name__)

# Table A: indexed [legs-1][trunk-1][neck-1]
# Legs 1-2, Trunk 1-5, Neck 1-4
# Neck is clamped to its 4 columns; a [0,5] clamp would read past the row
TABLE_A_SCORES = (
    # Legs = 1
    (
        (1, 2, 3, 4), # Trunk 1
        (2, 3, 4, 5), # Trunk 2
        (3, 4, 5, 6), # Trunk 3
        (4, 5, 6, 7), # Trunk 4
        (5, 6, 7, 8), # Trunk 5
    ),
    # Legs = 2
    (
        (1, 2, 3, 4),
        (3, 4, 5, 6),
        (4, 5, 6, 7),
        (5, 6, 7, 8),
        (6, 7, 8, 9),
    ),
)

# Table B: indexed [wrist-1][upper_arm-1][forearm-1]
# Wrist 1-3, UpperArm 1-6, Forearm 1-2
TABLE_B_SCORES = (
    # Wrist = 1
    ((1, 1), (2, 2), (2, 3), (3, 4), (4, 5), (5, 6)),
    # Wrist = 2
    ((1, 2), (2, 3), (3, 4), (4, 5), (5, 6), (6, 7)),
    # Wrist = 3
    ((3, 4), (4, 5), (5, 5), (5, 6), (6, 7), (7, 8)),
)

# Table C: indexed [score_a-1][score_b-1], both 1-12
TABLE_C_SCORES = (
    (1,  1,  1,  2,  3,  3,  4,  5,  6,  7,  7,  7),
    (1,  2,  2,  3,  4,  4,  5,  6,  6,  7,  7,  8),
    (2,  3,  3,  3,  4,  5,  6,  7,  7,  8,  8,  8),
    (3,  4,  4,  4,  5,  6,  7,  8,  8,  9,  9,  9),
    (4,  4,  4,  5,  6,  7,  8,  8,  9,  9,  9,  9),
    (6,  6,  6,  7,  8,  8,  9,  9, 10, 10, 10, 10),
    (7,  7,  7,  8,  9,  9,  9, 10, 10, 11, 11, 11),
    (8,  8,  8,  9, 10, 10, 10, 10, 10, 11, 11, 11),
    (9,  9,  9, 10, 10, 10, 11, 11, 11, 12, 12, 12),
    (10, 10, 10, 11, 11, 11, 11, 12, 12, 12, 12, 12),
    (11, 11, 11, 11, 12, 12, 12, 12, 12, 12, 12, 12),
    (12, 12, 12, 12, 12, 12, 12, 12, 12, 12, 12, 12),
)

# Adjustment caps
MAX_NECK_SCORE = 6
MAX_TRUNK_SCORE = 6
MAX_UPPER_ARM_SCORE = 6
MIN_UPPER_ARM_SCORE = 1
MAX_WRIST_SCORE = 3


def score_index(score: int, size: int) -> int:
    """ 1-based score -> 0-based index clamped to [0, size-1] """
    return max(0, min(size - 1, int(score) - 1))


# --- Adjustments ---

def adjust_neck(score: int, twisted: bool) -> int:
    return min(score + 1, MAX_NECK_SCORE) if twisted else score

def adjust_trunk(score: int, twisted: bool) -> int:
    return min(score + 1, MAX_TRUNK_SCORE) if twisted else score

def adjust_upper_arm(score: int, raised: bool, abducted: bool, supported: bool) -> int:
    if raised:
        score = min(score + 1, MAX_UPPER_ARM_SCORE)
    if abducted:
        score = min(score + 1, MAX_UPPER_ARM_SCORE)
    if supported:
        score = max(score - 1, MIN_UPPER_ARM_SCORE)
    return score

def adjust_wrist(score: int, bent: bool, twisted: bool) -> int:
    if bent:
        score = min(score + 1, MAX_WRIST_SCORE)
    if twisted:
        score = min(score + 1, MAX_WRIST_SCORE)
    return score


# --- Lookups ---
# Every axis is clamped to that axis' own length, so no lookup can go out of range.

def table_a_indices(neck: int, trunk: int, legs: int) -> Tuple[int, int, int]:
    """ (legs, trunk, neck) indices into Table A """
    return (
        score_index(legs, len(TABLE_A_SCORES)),
        score_index(trunk, len(TABLE_A_SCORES[0])),
        score_index(neck, len(TABLE_A_SCORES[0][0])),
    )

def table_b_indices(upper_arm: int, forearm: int, wrist: int) -> Tuple[int, int, int]:
    """ (wrist, arm, forearm) indices into Table B """
    return (
        score_index(wrist, len(TABLE_B_SCORES)),
        score_index(upper_arm, len(TABLE_B_SCORES[0])),
        score_index(forearm, len(TABLE_B_SCORES[0][0])),
    )

def table_c_indices(score_a: int, score_b: int) -> Tuple[int, int]:
    return (
        score_index(score_a, len(TABLE_C_SCORES)),
        score_index(score_b, len(TABLE_C_SCORES[0])),
    )

def get_table_a_score(neck: int, trunk: int, legs: int) -> int:
    """ Scores are the adjusted neck/trunk scores and the postural legs score """
    legs_idx, trunk_idx, neck_idx = table_a_indices(neck, trunk, legs)
    return TABLE_A_SCORES[legs_idx][trunk_idx][neck_idx]

def get_table_b_score(upper_arm: int, forearm: int, wrist: int) -> int:
    wrist_idx, arm_idx, forearm_idx = table_b_indices(upper_arm, forearm, wrist)
    return TABLE_B_SCORES[wrist_idx][arm_idx][forearm_idx]

def get_table_c_score(score_a: int, score_b: int) -> int:
    a_idx, b_idx = table_c_indices(score_a, score_b)
    return TABLE_C_SCORES[a_idx][b_idx]


def score_group_a(neck: int, trunk: int, legs: int, neck_twisted: bool, trunk_twisted: bool) -> int:
    """ Posture score A from postural sub-scores plus twist adjustments """
    adjusted_neck = adjust_neck(neck, neck_twisted)
    adjusted_trunk = adjust_trunk(trunk, trunk_twisted)
    score = get_table_a_score(adjusted_neck, adjusted_trunk, legs)
    logger.debug("Table A: neck=%s trunk=%s legs=%s -> %s", adjusted_neck, adjusted_trunk, legs, score)
    return score

def score_group_b(upper_arm: int, forearm: int, wrist: int, shoulder_raised: bool, arm_abducted: bool,
                  arm_supported: bool, wrist_bent: bool, wrist_twisted: bool) -> int:
    """ Posture score B from postural sub-scores plus arm/wrist adjustments """
    adjusted_arm = adjust_upper_arm(upper_arm, shoulder_raised, arm_abducted, arm_supported)
    adjusted_wrist = adjust_wrist(wrist, wrist_bent, wrist_twisted)
    score = get_table_b_score(adjusted_arm, forearm, adjusted_wrist)
    logger.debug("Table B: arm=%s forearm=%s wrist=%s -> %s", adjusted_arm, forearm, adjusted_wrist, score)
    return score
