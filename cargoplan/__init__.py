from .logger import logger
from .config import DEFAULT_SETTINGS, EngineSettings
from .model import *  # noqa: F401,F403
from .model import __all__ as _model_all
from .catalog import build_solo, build_vehicle, make_unit

__version__ = "0.1.0"

__all__ = [
    "logger",
    "DEFAULT_SETTINGS",
    "EngineSettings",
    "build_solo",
    "build_vehicle",
    "make_unit",
    *_model_all,
]
