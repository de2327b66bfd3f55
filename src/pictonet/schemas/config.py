"""GlobalConfig: the studio-wide configuration record.

Style directives, target aspect ratio, model selection, geographic and
linguistic context, author and license strings. It is passed explicitly
into every stage call and never mutated by the pipeline itself.

Field aliases mirror the camelCase keys found in exported project
documents, so a config block read from a JSON export validates directly.
"""

from typing import Literal, Optional
from pydantic import Field

from pictonet.schemas.base import PictonetBaseModel


ASPECT_RATIOS = ("1:1", "3:4", "4:3", "9:16", "16:9")

IMAGE_MODELS = {
    "flash": "gemini-2.5-flash-image",
    "pro": "gemini-3-pro-image-preview",
}

DEFAULT_VISUAL_STYLE_PROMPT = (
    "Siluetas sobre un fondo blanco plano. Sin degradados, sin sombras, sin "
    "texturas y sin contornos. Geometría: Usa trazos gruesos y consistentes y "
    "simplificación geométrica. Todas las extremidades y terminales deben tener "
    "puntas redondeadas y vértices suavizados. Composición: Representación plana "
    "2D centrada. Usa el espacio negativo (blanco) para definir la separación "
    "interna entre formas negras superpuestas (por ejemplo, el espacio entre una "
    "cabeza y un torso). Claridad: Maximiza la legibilidad y el reconocimiento "
    "semántico a escalas pequeñas. Evita cualquier rasgo facial o detalles "
    "intrincados. Usa color solo en el elemento distintivo, si es necesario."
)


class _AliasedModel(PictonetBaseModel):
    model_config = PictonetBaseModel.model_config.copy()
    model_config.update({"populate_by_name": True})


class GeoContext(_AliasedModel):
    """Geographic context used to localize generated content."""
    lat: str = "40.4168"
    lng: str = "-3.7038"
    region: str = "Madrid, ES"


class SvgStyle(_AliasedModel):
    """Presentation of one CSS class in structured SVG output.

    Additional CSS properties are kept as given.
    """

    model_config = _AliasedModel.model_config.copy()
    model_config.update({"extra": "allow"})

    fill: str = "#000000"
    stroke: str = "none"
    stroke_width: float = Field(0, alias="strokeWidth", ge=0)
    opacity: Optional[float] = Field(None, ge=0, le=1)
    stroke_linecap: Optional[Literal["butt", "round", "square"]] = Field(None, alias="strokeLinecap")
    stroke_linejoin: Optional[Literal["miter", "round", "bevel"]] = Field(None, alias="strokeLinejoin")


def default_svg_styles() -> dict[str, SvgStyle]:
    """Foreground ``f`` in black, knockout ``k`` in white."""
    return {
        "f": SvgStyle(fill="#000000"),
        "k": SvgStyle(fill="#ffffff"),
    }


class GlobalConfig(_AliasedModel):
    """Studio configuration passed to every stage invocation.

    Usage
    -----
        config = GlobalConfig(lang="en", aspect_ratio="16:9")
        outcome = await processor.process(row_id, Stage.RENDERING, config)

    Notes
    -----
    ``image_model`` is the short selector (``flash`` or ``pro``); use
    :attr:`image_model_name` for the concrete model identifier. Keys that
    only matter to a user interface (``uiLang``) are ignored on input.
    """

    model_config = _AliasedModel.model_config.copy()
    # Forgiving input for documents written by older clients
    model_config.update({"extra": "ignore"})

    lang: str = "es"
    geo_context: GeoContext = Field(default_factory=GeoContext, alias="geoContext")
    aspect_ratio: Literal["1:1", "3:4", "4:3", "9:16", "16:9"] = Field("1:1", alias="aspectRatio")
    image_model: Literal["flash", "pro"] = Field("flash", alias="imageModel")
    author: str = "PICTOS.NET"
    license: str = "CC BY 4.0"
    visual_style_prompt: str = Field(DEFAULT_VISUAL_STYLE_PROMPT, alias="visualStylePrompt")
    svg_styles: dict[str, SvgStyle] = Field(default_factory=default_svg_styles, alias="svgStyles")

    @property
    def image_model_name(self) -> str:
        return IMAGE_MODELS[self.image_model]

    def to_document(self) -> dict:
        """Serialize with the camelCase keys used in project documents."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
