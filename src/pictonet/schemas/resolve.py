"""Configuration resolution and merging logic.

This module provides the single entrypoint for configuration resolution:
resolve_config(). It merges the persisted studio configuration, UserConfig
and CLIConfig in the correct precedence order and returns a validated,
frozen RuntimeConfig.

Precedence (highest to lowest):
1. CLIConfig (command-line overrides)
2. UserConfig (user file)
3. Persisted GlobalConfig (or defaults when nothing is stored)
"""

from typing import Union, Optional, Literal
from pydantic import Field

from pictonet.schemas.base import PictonetBaseModel
from pictonet.schemas.config import GlobalConfig
from pictonet.schemas.user import UserConfig
from pictonet.schemas.cli import CLIConfig


class RuntimeConfig(PictonetBaseModel):
    """Fully resolved configuration for one CLI invocation.

    ``studio`` is the GlobalConfig handed to every stage call. The remaining
    fields are operational and are never persisted with the project.
    """

    model_config = PictonetBaseModel.model_config.copy()
    model_config.update({"frozen": True})

    studio: GlobalConfig
    base_dir: Optional[str] = None
    db_path: Optional[str] = None
    concurrency: Optional[int] = Field(None, ge=1)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


def deep_merge(base: dict, *overrides: dict) -> dict:
    """Return ``base`` with each override layered on top, left to right.

    Nested dicts such as ``studio.geo_context`` merge key by key, so a user
    file can set one geo field without wiping the others. Inputs are not
    mutated.

    >>> deep_merge({"studio": {"lang": "es", "author": "A"}}, {"studio": {"lang": "en"}})
    {'studio': {'lang': 'en', 'author': 'A'}}
    """
    merged = dict(base)
    for layer in overrides:
        for key, value in layer.items():
            current = merged.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                value = deep_merge(current, value)
            merged[key] = value
    return merged


def _coerce(cfg, model):
    if cfg is None:
        return model()
    if isinstance(cfg, model):
        return cfg
    return model.model_validate(cfg)


def resolve_config(
    base_cfg: Optional[Union[dict, GlobalConfig]] = None,
    user_cfg: Optional[Union[dict, UserConfig]] = None,
    cli_cfg: Optional[Union[dict, CLIConfig]] = None,
) -> RuntimeConfig:
    """Resolve the runtime configuration from persisted, user and CLI configs.

    Parameters
    ----------
    base_cfg : dict or GlobalConfig, optional
        Persisted studio configuration. Defaults are used when None.
    user_cfg : dict or UserConfig, optional
        Upper-case keys from a user config file.
    cli_cfg : dict or CLIConfig, optional
        Command-line overrides.

    Returns
    -------
    RuntimeConfig
        Frozen configuration for this invocation.

    Raises
    ------
    ValidationError
        If any layer fails Pydantic validation.

    >>> resolve_config(None, UserConfig(ASPECT_RATIO="16:9")).studio.aspect_ratio
    '16:9'
    """
    base = _coerce(base_cfg, GlobalConfig)
    user = _coerce(user_cfg, UserConfig)
    cli = _coerce(cli_cfg, CLIConfig)

    merged = deep_merge(
        {"studio": base.model_dump()},
        user.to_overrides(),
        cli.to_overrides(),
    )
    return RuntimeConfig.model_validate(merged)
