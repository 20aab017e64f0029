class AttainmentError(Exception):
    """Base class for attainment calculation errors"""


class NotFoundError(AttainmentError):
    """A referenced course, outcome, section, student, program or batch does not exist"""

    def __init__(self, entity, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ConfigurationError(AttainmentError):
    """Thresholds, weights or survey values are outside their allowed ranges"""


class PersistenceError(AttainmentError):
    """Writing attainment results failed and the transaction was rolled back"""
