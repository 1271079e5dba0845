"""
Army Physical Fitness Test points for a rep count (17-21 age group scale).
"""
from typing import Dict, Optional

PUSHUP_SCORE_TABLE: Dict[int, int] = {
    68: 100, 67: 99, 66: 97, 65: 96, 64: 94, 63: 93, 62: 91, 61: 90, 60: 88,
    59: 87, 58: 85, 57: 84, 56: 82, 55: 81, 54: 79, 53: 78, 52: 76, 51: 75, 50: 74,
    49: 72, 48: 71, 47: 69, 46: 68, 45: 66, 44: 65, 43: 63, 42: 62, 41: 60, 40: 59,
    39: 57, 38: 56, 37: 54, 36: 53, 35: 51, 34: 50, 33: 48, 32: 47, 31: 46, 30: 44,
    29: 43, 28: 41, 27: 40, 26: 38, 25: 37, 24: 35, 23: 34, 22: 32, 21: 31, 20: 29,
    19: 28, 18: 26, 17: 25, 16: 24, 15: 22, 14: 21, 13: 19, 12: 18, 11: 16, 10: 15,
    9: 13, 8: 12, 7: 10, 6: 9, 5: 7, 4: 6, 3: 4, 2: 3, 1: 1, 0: 0,
}

# One point per rep up to 50, then the scale steepens
SITUP_SCORE_TABLE: Dict[int, int] = {reps: reps for reps in range(51)}
SITUP_SCORE_TABLE.update({
    51: 52, 52: 58, 53: 60, 54: 62, 55: 64, 56: 66, 57: 68, 58: 70, 59: 72, 60: 74,
    61: 76, 62: 78, 63: 80, 64: 82, 65: 84, 66: 86, 67: 88, 68: 90, 69: 91, 70: 92,
    71: 93, 72: 94, 73: 95, 74: 96, 75: 97, 76: 98, 77: 99, 78: 100,
})

PULLUP_SCORE_TABLE: Dict[int, int] = {reps: reps * 4 for reps in range(26)}  # 25 reps = 100 points

SCORE_TABLES: Dict[str, Dict[int, int]] = {
    "pushup": PUSHUP_SCORE_TABLE,
    "situp": SITUP_SCORE_TABLE,
    "pullup": PULLUP_SCORE_TABLE,
}


def get_score(reps: int, table: Dict[int, int]) -> int:
    """
    Look up the points for a rep count.

    Args:
        reps: Number of valid repetitions
        table: Rep count to points table
    Returns:
        Points for the highest tabulated rep count not above `reps` (0 for negative counts)
    """
    max_reps = max(table)
    if reps >= max_reps:
        return table[max_reps]
    while reps >= 0 and reps not in table:
        reps -= 1
    return table[reps] if reps >= 0 else 0


def calculate_apft_score(exercise_name: str, reps: int) -> Optional[int]:
    """APFT points for `reps` of an exercise, or None if the exercise has no scale."""
    table = SCORE_TABLES.get(exercise_name)
    if table is None:
        return None
    return get_score(reps, table)
