"""Engine configuration."""
from .settings import EngineSettings

__all__ = ["EngineSettings"]
