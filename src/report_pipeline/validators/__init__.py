from .observation_validator import ObservationValidator, parse_timestamp
