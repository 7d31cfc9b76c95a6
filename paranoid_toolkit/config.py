"""
Configuration module for Paranoid Python Toolkit.

Provides the configuration surface for paranoid (soft) deletion: field names,
scope names, the "not deleted" sentinel and feature switches.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def parse_sentinel(value: str) -> Any:
    """
    Convert a sentinel read from the environment.

    An empty value is the NULL sentinel. ISO 8601 timestamps become
    datetimes so they compare against timestamp columns; anything else is
    kept as a string.
    """
    if value == "":
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return value


class ParanoidConfig(BaseModel):
    """Configuration for paranoid deletion on a model.

    A configuration is resolved once, when a model is enrolled with
    :func:`paranoid_toolkit.soft_delete.paranoid`. Changing the global
    configuration afterwards does not affect models that are already enrolled.

    Example:
        >>> config = ParanoidConfig(
        ...     enable_deleted_by=True,
        ...     enable_default_scope=True,
        ... )

        Renaming scopes and fields:

        >>> config = ParanoidConfig(
        ...     deleted_at_field_name="removed_on",
        ...     non_deleted_scope_name="alive",
        ...     deleted_scope_name="trashed",
        ...     ignore_deletion_scope_name="everything",
        ... )

    Environment Variables:
        All options can be set through environment variables with the
        PARANOID_ prefix, e.g. PARANOID_ENABLE_DEFAULT_SCOPE=true.
    """

    model_config = ConfigDict(frozen=True)

    # Field names
    deleted_at_field_name: str = Field(
        "deleted_at", description="Attribute holding the deletion timestamp"
    )
    deleted_by_field_name: str = Field(
        "deleted_by", description="Attribute holding the deleting actor"
    )

    # Scope names
    deleted_scope_name: str = Field(
        "deleted", description="Name of the scope with only deleted rows"
    )
    non_deleted_scope_name: str = Field(
        "present", description="Name of the scope with only non-deleted rows"
    )
    ignore_deletion_scope_name: str = Field(
        "with_deleted", description="Name of the unfiltered scope"
    )

    # Features
    enable_deleted_by: bool = Field(
        False, description="Track who deleted a record"
    )
    enable_default_scope: bool = Field(
        False, description="Hide deleted rows from ordinary queries"
    )
    deleted_column_default: Any = Field(
        None, description="Sentinel value of the deletion marker for live rows"
    )
    include_deleted_option: str = Field(
        "include_deleted",
        description="Execution option that bypasses the default scope",
    )
    commit_on_save: bool = Field(
        True, description="Commit the session after delete and recover writes"
    )

    @field_validator(
        "deleted_at_field_name",
        "deleted_by_field_name",
        "deleted_scope_name",
        "non_deleted_scope_name",
        "ignore_deletion_scope_name",
        "include_deleted_option",
    )
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        """Ensure names can be used as attribute and option names."""
        v = v.strip()
        if not v.isidentifier():
            raise ValueError(f"'{v}' is not a valid Python identifier")
        return v

    @model_validator(mode="after")
    def validate_distinct_names(self) -> "ParanoidConfig":
        """Ensure scope names and field names do not collide."""
        scopes = {
            self.deleted_scope_name,
            self.non_deleted_scope_name,
            self.ignore_deletion_scope_name,
        }
        if len(scopes) != 3:
            raise ValueError("Scope names must be distinct")

        if self.deleted_at_field_name == self.deleted_by_field_name:
            raise ValueError(
                "deleted_at and deleted_by field names must be different"
            )

        return self

    @property
    def scope_names(self) -> Dict[str, str]:
        """Map of logical scope to its configured name."""
        return {
            "present": self.non_deleted_scope_name,
            "deleted": self.deleted_scope_name,
            "unfiltered": self.ignore_deletion_scope_name,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump()

    def merge(self, **overrides: Any) -> "ParanoidConfig":
        """Return a new configuration with the given overrides applied."""
        if not overrides:
            return self
        config_dict = self.to_dict()
        config_dict.update(overrides)
        return type(self).model_validate(config_dict)

    @classmethod
    def from_env(cls, prefix: str = "PARANOID_") -> "ParanoidConfig":
        """
        Load configuration from environment variables.

        Args:
            prefix: Prefix for environment variables

        Returns:
            Configuration instance
        """
        import os

        config_dict: Dict[str, Any] = {}

        for field_name, field_info in cls.model_fields.items():
            env_var = f"{prefix}{field_name.upper()}"
            if env_var not in os.environ:
                continue

            value = os.environ[env_var]

            if field_info.annotation == bool:
                config_dict[field_name] = value.lower() in ("true", "1", "yes", "on")
            elif field_name == "deleted_column_default":
                config_dict[field_name] = parse_sentinel(value)
            else:
                config_dict[field_name] = value

        return cls.model_validate(config_dict)


# Global configuration instance
_config: Optional[ParanoidConfig] = None


def get_config() -> ParanoidConfig:
    """
    Get the global configuration instance.

    Returns:
        Global configuration
    """
    global _config

    if _config is None:
        _config = ParanoidConfig.from_env()

    return _config


def set_config(config: Optional[ParanoidConfig]) -> None:
    """
    Set the global configuration instance.

    Args:
        config: Configuration to set, or None to reload from the environment
    """
    global _config
    _config = config


def configure(**kwargs: Any) -> ParanoidConfig:
    """
    Configure the toolkit defaults with keyword arguments.

    Args:
        **kwargs: Configuration parameters

    Returns:
        Updated configuration
    """
    global _config

    _config = get_config().merge(**kwargs)

    return _config
