"""Error types raised by the pipeline stages."""


class DataIntegrityError(ValueError):
    """A numeric column holds entries that cannot be read as numbers."""


class SchemaError(ValueError):
    """A required column is absent or a value lies outside its declared domain."""


class ImputationError(ValueError):
    """Imputation is undefined for a column (e.g. it has no observed values)."""
