"""UserConfig: Forgiving, minimal user-facing configuration.

This schema accepts user inputs with aliases for the upper-case keys used
in config files (e.g., ASPECT_RATIO → aspect_ratio, IMAGE_MODEL → image_model).

UserConfig is intentionally minimal - users only specify what they want
to override from the defaults or from the persisted studio configuration.
"""

from typing import Literal, Optional
from pydantic import Field, field_validator

from pictonet.schemas.base import PictonetBaseModel
from pictonet.schemas.config import SvgStyle


class UserGeoConfig(PictonetBaseModel):
    """User-facing geographic context."""
    lat: Optional[str] = None
    lng: Optional[str] = None
    region: Optional[str] = None

    @field_validator("lat", "lng", mode="before")
    @classmethod
    def coerce_coordinate(cls, v):
        """Accept numbers for coordinates."""
        if isinstance(v, (int, float)):
            return str(v)
        return v


class UserConfig(PictonetBaseModel):
    """User-facing configuration schema.

    Usage
    -----
        user_cfg = UserConfig.model_validate({
            "LANG": "en",
            "ASPECT_RATIO": "16:9",
            "BASE_DIR": "~/pictonet",
        })

        config = resolve_config(persisted, user_cfg, cli_cfg)
    """

    # Studio settings (flat aliases)
    lang: Optional[str] = Field(None, alias="LANG")
    aspect_ratio: Optional[Literal["1:1", "3:4", "4:3", "9:16", "16:9"]] = Field(None, alias="ASPECT_RATIO")
    image_model: Optional[Literal["flash", "pro"]] = Field(None, alias="IMAGE_MODEL")
    author: Optional[str] = Field(None, alias="AUTHOR")
    license: Optional[str] = Field(None, alias="LICENSE")
    visual_style_prompt: Optional[str] = Field(None, alias="VISUAL_STYLE_PROMPT")

    # Geographic context (flat aliases)
    region: Optional[str] = Field(None, alias="REGION")
    lat: Optional[str] = Field(None, alias="LAT")
    lng: Optional[str] = Field(None, alias="LNG")

    # Operational settings
    base_dir: Optional[str] = Field(None, alias="BASE_DIR")
    db_path: Optional[str] = Field(None, alias="DB_PATH")
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = Field(None, alias="LOG_LEVEL")
    concurrency: Optional[int] = Field(None, alias="CONCURRENCY", ge=1)

    # Nested overrides (advanced users)
    geo_context: Optional[UserGeoConfig] = None
    svg_styles: Optional[dict[str, SvgStyle]] = Field(None, alias="SVG_STYLES")

    model_config = PictonetBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown legacy keys)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("lat", "lng", mode="before")
    @classmethod
    def coerce_coordinate(cls, v):
        """Accept numbers for coordinates."""
        if isinstance(v, (int, float)):
            return str(v)
        return v

    @field_validator("image_model", "lang", mode="before")
    @classmethod
    def normalize_lowercase(cls, v):
        """Normalize selectors to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper().strip()
        return v

    def to_overrides(self) -> dict:
        """Convert flat UserConfig to the nested runtime structure.

        Returns
        -------
        dict
            Nested dictionary matching RuntimeConfig structure
        """
        overrides = {}

        studio = {}
        for name in ("lang", "aspect_ratio", "image_model", "author",
                     "license", "visual_style_prompt"):
            value = getattr(self, name)
            if value is not None:
                studio[name] = value

        geo = {}
        if self.region is not None:
            geo["region"] = self.region
        if self.lat is not None:
            geo["lat"] = self.lat
        if self.lng is not None:
            geo["lng"] = self.lng

        # Merge with explicit geo config
        if self.geo_context is not None:
            geo.update(self.geo_context.model_dump(exclude_none=True))

        if geo:
            studio["geo_context"] = geo

        if self.svg_styles is not None:
            studio["svg_styles"] = {
                name: style.model_dump(exclude_none=True)
                for name, style in self.svg_styles.items()
            }

        if studio:
            overrides["studio"] = studio

        for name in ("base_dir", "db_path", "log_level", "concurrency"):
            value = getattr(self, name)
            if value is not None:
                overrides[name] = str(value) if name in ("base_dir", "db_path") else value

        return overrides
