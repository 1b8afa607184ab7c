"""
Secrets Module Functions
Replaces <<secretName>> placeholders in templates with values from the configured secret provider
"""

import enum
import re

import pulumi
from typing import Callable

from modules.errors import SecretProviderError

PLACEHOLDER_PATTERN = re.compile(r"<<([^<>]+)>>")


class SecretProvider(enum.Enum):
    UNKNOWN = "unknown"
    PULUMI = "pulumi"
    AWS = "aws"
    GCP = "gcp"

    @classmethod
    def from_string(cls, value: str) -> "SecretProvider":
        for provider in cls:
            if provider.value == value:
                return provider
        return cls.UNKNOWN

    def __str__(self) -> str:
        return self.value


def template_with_function(source: str, lookup: Callable[[str], str]) -> str:
    """Replace every <<key>> in source with lookup(key)"""
    return PLACEHOLDER_PATTERN.sub(lambda match: lookup(match.group(1).strip()), source)


def replace_secrets_from_pulumi(config: pulumi.Config, source: str) -> str:
    """
    Use Pulumi stack secrets as the secret provider

    Config.require returns the decrypted value directly, so the placeholders
    are resolved while the program is evaluated.
    """
    return template_with_function(source, config.require)


def replace_secrets_from_aws(config: pulumi.Config, source: str) -> str:
    raise SecretProviderError("AWS secret provider is not yet implemented")


def replace_secrets_from_gcp(config: pulumi.Config, source: str) -> str:
    raise SecretProviderError("GCP secret provider is not yet implemented")


def replace_secrets(source: str, config: pulumi.Config = None) -> str:
    """
    Replace <<secretName>> placeholders using the stack's secretProvider

    Credentials for the provider are expected to be present in the
    environment already.

    Args:
        source: Template text
        config: Stack configuration, defaults to the project config

    Returns:
        Text with secret values substituted
    """
    config = config or pulumi.Config()
    secret_provider = config.require("secretProvider")

    provider = SecretProvider.from_string(secret_provider)
    if provider is SecretProvider.PULUMI:
        return replace_secrets_from_pulumi(config, source)
    if provider is SecretProvider.AWS:
        return replace_secrets_from_aws(config, source)
    if provider is SecretProvider.GCP:
        return replace_secrets_from_gcp(config, source)

    raise SecretProviderError(
        f"unknown secretProvider: {secret_provider} . Please use one of "
        f"['{SecretProvider.PULUMI}','{SecretProvider.AWS}','{SecretProvider.GCP}']"
    )
