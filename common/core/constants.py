from enum import Enum


class Environment(str, Enum):
    """Environment profiles."""

    LOCAL = "local"
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"

    @property
    def exposes_docs(self) -> bool:
        """OpenAPI docs are only served in local development."""
        return self == Environment.LOCAL
