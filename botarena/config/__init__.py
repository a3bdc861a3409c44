from .settings import EngineSettings, get_settings, get_bool_env, get_int_env

__all__ = ["EngineSettings", "get_settings", "get_bool_env", "get_int_env"]
