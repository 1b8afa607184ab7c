"""
Secrets Module
Secret placeholder templating
"""

from .functions import SecretProvider, replace_secrets

__all__ = ["SecretProvider", "replace_secrets"]
