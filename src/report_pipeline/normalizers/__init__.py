from .unit_normalizer import UnitNormalizer, convert, revert
