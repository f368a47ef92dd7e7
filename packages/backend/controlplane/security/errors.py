class ConfigurationError(Exception):
    """Signing or verification key material is missing."""
