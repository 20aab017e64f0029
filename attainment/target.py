from dataclasses import replace

from attainment.values import StudentCOAttainment


def meets_target(weighted_percentage, target_percentage):
    """A student meets the target when the weighted percentage reaches it; equality counts"""
    return weighted_percentage >= target_percentage


def evaluate_target(result, thresholds):
    """Return the student result with met_target set. NoData passes through unchanged."""
    if not isinstance(result, StudentCOAttainment):
        return result
    return replace(result, met_target=meets_target(result.weighted_percentage, thresholds.target_percentage))
