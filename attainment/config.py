from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from attainment.errors import ConfigurationError

HUNDRED = Decimal('100')
MAX_LEVEL = Decimal('3')
WEIGHT_SUM_TOLERANCE = Decimal('0.001')


def to_decimal(value, field_name):
    """Convert a config value (str, float, int, Decimal) to Decimal or raise ConfigurationError"""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ConfigurationError(f"{field_name} must be numeric, got {value!r}")


def _set_decimals(instance, names):
    for name in names:
        object.__setattr__(instance, name, to_decimal(getattr(instance, name), name))


@dataclass(frozen=True)
class ThresholdConfig:
    """Per-course target and level thresholds, all percentages in 0-100"""
    target_percentage: Decimal
    level1: Decimal
    level2: Decimal
    level3: Decimal

    def __post_init__(self):
        _set_decimals(self, ('target_percentage', 'level1', 'level2', 'level3'))
        for name in ('target_percentage', 'level1', 'level2', 'level3'):
            value = getattr(self, name)
            if value < 0 or value > HUNDRED:
                raise ConfigurationError(f"{name} must be between 0 and 100, got {value}")
        if not (self.level1 < self.level2 < self.level3):
            raise ConfigurationError(
                f"Level thresholds must be strictly increasing, got "
                f"{self.level1} / {self.level2} / {self.level3}")

    @classmethod
    def from_course(cls, course):
        try:
            return cls(course.target_percentage, course.level1_threshold,
                       course.level2_threshold, course.level3_threshold)
        except ConfigurationError as e:
            raise ConfigurationError(f"Course {course.code}: {e}")

    def to_dict(self):
        return {
            'target_percentage': float(self.target_percentage),
            'level1_threshold': float(self.level1),
            'level2_threshold': float(self.level2),
            'level3_threshold': float(self.level3),
        }


@dataclass(frozen=True)
class WeightConfig:
    """Blend of direct (assessment) and indirect (survey) attainment"""
    direct_weight: Decimal = Decimal('0.8')
    indirect_weight: Decimal = Decimal('0.2')

    def __post_init__(self):
        _set_decimals(self, ('direct_weight', 'indirect_weight'))
        for name in ('direct_weight', 'indirect_weight'):
            value = getattr(self, name)
            if value < 0 or value > 1:
                raise ConfigurationError(f"{name} must be between 0 and 1, got {value}")
        if abs(self.direct_weight + self.indirect_weight - 1) > WEIGHT_SUM_TOLERANCE:
            raise ConfigurationError(
                f"Direct and indirect weights must sum to 1.0, got "
                f"{self.direct_weight + self.indirect_weight}")

    def to_dict(self):
        return {
            'direct_weight': float(self.direct_weight),
            'indirect_weight': float(self.indirect_weight),
        }


@dataclass(frozen=True)
class POConfig:
    """PO target level, status thresholds (0-3 scale) and compliance rule"""
    target_level: Decimal = Decimal('2.0')
    level1: Decimal = Decimal('1.5')
    level2: Decimal = Decimal('2.0')
    level3: Decimal = Decimal('2.5')
    min_compliance_fraction: Decimal = Decimal('0.6')
    course_statuses: tuple = ('COMPLETED',)

    def __post_init__(self):
        _set_decimals(self, ('target_level', 'level1', 'level2', 'level3', 'min_compliance_fraction'))
        for name in ('target_level', 'level1', 'level2', 'level3'):
            value = getattr(self, name)
            if value < 0 or value > MAX_LEVEL:
                raise ConfigurationError(f"{name} must be between 0 and 3, got {value}")
        if not (self.level1 < self.level2 < self.level3):
            raise ConfigurationError(
                f"PO level thresholds must be strictly increasing, got "
                f"{self.level1} / {self.level2} / {self.level3}")
        if self.min_compliance_fraction <= 0 or self.min_compliance_fraction > 1:
            raise ConfigurationError(
                f"min_compliance_fraction must be in (0, 1], got {self.min_compliance_fraction}")
        object.__setattr__(self, 'course_statuses', tuple(self.course_statuses))
        if not self.course_statuses:
            raise ConfigurationError("At least one course status must be in scope")

    def to_dict(self):
        return {
            'target_level': float(self.target_level),
            'level1_threshold': float(self.level1),
            'level2_threshold': float(self.level2),
            'level3_threshold': float(self.level3),
            'min_compliance_fraction': float(self.min_compliance_fraction),
            'course_statuses': list(self.course_statuses),
        }
