from .config import Settings, DEFAULT_STYLES

__all__ = ["Settings", "DEFAULT_STYLES"]
