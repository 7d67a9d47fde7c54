"""Quote/apply pricing engines for v2 and v3 pools"""

from .config import EngineConfig, DEFAULT_CONFIG, V2Presets, V3Presets

__all__ = ["EngineConfig", "DEFAULT_CONFIG", "V2Presets", "V3Presets"]
