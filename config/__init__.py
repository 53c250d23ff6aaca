from .loader import DEFAULT_PATH, DEFAULTS, load_config

__all__ = ["DEFAULT_PATH", "DEFAULTS", "load_config"]
