"""
Real-API / simulation switch.

Priority order:
  1. Runtime override saved in the settings file (`showreel_use_real_apis`)
  2. SHOWREEL_USE_REAL_APIS environment variable
  3. Default: simulation
"""

import os
import logging
from typing import Optional

from .store import SettingsStore

logger = logging.getLogger(__name__)

API_MODE_KEY = "showreel_use_real_apis"


def get_env_api_mode() -> bool:
    return os.getenv("SHOWREEL_USE_REAL_APIS", "false").lower() == "true"


def get_api_mode_override() -> Optional[bool]:
    value = SettingsStore().get(API_MODE_KEY)
    if value is True or value == "true":
        return True
    if value is False or value == "false":
        return False
    return None


def use_real_apis() -> bool:
    override = get_api_mode_override()
    if override is not None:
        return override
    return get_env_api_mode()


def set_api_mode(real: bool):
    SettingsStore().set(API_MODE_KEY, "true" if real else "false")
    logger.info(f"API mode set to {'real' if real else 'simulation'}")


def clear_api_mode_override():
    SettingsStore().remove(API_MODE_KEY)
    logger.info("API mode override cleared, following environment")


def describe_api_mode() -> dict:
    override = get_api_mode_override()
    return {
        "use_real_apis": use_real_apis(),
        "source": "override" if override is not None else "environment",
        "env_value": get_env_api_mode(),
    }
