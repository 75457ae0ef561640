"""imagetweaker: raster image effects pipeline with faithful SVG export."""

from .config_manager import ConfigManager
from .image_processing import ImageProcessor
from .models import EditorConfig, EffectSettings, EffectsOrder, StageId

__all__ = [
    "ConfigManager",
    "EditorConfig",
    "EffectSettings",
    "EffectsOrder",
    "ImageProcessor",
    "RenderThread",
    "StageId",
]


def __getattr__(name):
    # AIDEV-NOTE: Qt loads on first use so the core stays importable headless
    if name == "RenderThread":
        from .render_thread import RenderThread

        return RenderThread
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
