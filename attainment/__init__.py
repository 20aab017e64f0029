"""Course and program outcome attainment calculation."""

from attainment.errors import AttainmentError, NotFoundError, ConfigurationError, PersistenceError
from attainment.values import NoData, NotEnrolled, Attempted, NOT_ATTEMPTED
from attainment.engine import AttainmentEngine
