"""
Module Errors
Exceptions raised by the platform modules
"""


class ConfigurationError(Exception):
    """Required stack configuration is missing or contradictory"""


class DiscoveryError(Exception):
    """An AWS lookup did not find exactly the resources it needs"""


class SecretProviderError(Exception):
    """The configured secret provider is unknown or unsupported"""
