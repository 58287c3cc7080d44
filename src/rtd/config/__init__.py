from rtd.config.loader import load_runtime_config
from rtd.config.models import RuntimeConfig

__all__ = ["RuntimeConfig", "load_runtime_config"]
