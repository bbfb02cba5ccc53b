"""Configuration loading for kubeship."""

from .config_utils import substitute_env_vars
from .settings import DeploySettings, load_settings

__all__ = ["DeploySettings", "load_settings", "substitute_env_vars"]
