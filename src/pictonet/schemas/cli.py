"""CLIConfig: Command-line operational overrides.

Minimal configuration for settings that commonly change between runs:
studio language, aspect ratio, image model, storage paths, verbosity.

This schema handles command-line arguments parsed by argparse.
"""

from typing import Literal, Optional
from pydantic import Field

from pictonet.schemas.base import PictonetBaseModel


class CLIConfig(PictonetBaseModel):
    """Command-line configuration overrides.

    Highest priority in config resolution.

    Usage
    -----
        cli_cfg = CLIConfig(lang="en", image_model="pro", db_path="studio.db")
        config = resolve_config(persisted, user_cfg, cli_cfg)
    """

    lang: Optional[str] = None
    aspect_ratio: Optional[Literal["1:1", "3:4", "4:3", "9:16", "16:9"]] = None
    image_model: Optional[Literal["flash", "pro"]] = None
    author: Optional[str] = None
    license: Optional[str] = None
    base_dir: Optional[str] = None
    db_path: Optional[str] = None
    concurrency: Optional[int] = Field(None, ge=1)
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = None

    def to_overrides(self) -> dict:
        """Convert CLI config to the nested runtime structure.

        Returns
        -------
        dict
            Nested dictionary matching RuntimeConfig structure
        """
        overrides = {}

        studio = {}
        for name in ("lang", "aspect_ratio", "image_model", "author", "license"):
            value = getattr(self, name)
            if value is not None:
                studio[name] = value
        if studio:
            overrides["studio"] = studio

        if self.base_dir is not None:
            overrides["base_dir"] = str(self.base_dir)
        if self.db_path is not None:
            overrides["db_path"] = str(self.db_path)
        if self.concurrency is not None:
            overrides["concurrency"] = self.concurrency
        if self.log_level is not None:
            overrides["log_level"] = self.log_level

        return overrides
