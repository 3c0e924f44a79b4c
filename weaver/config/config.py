import os
from typing import Any, Dict, Optional, Tuple

import toml
from dotenv import dotenv_values

CONFIG_DIR = os.path.dirname(os.path.abspath(__file__))


def get_default_config():
    """Get default configuration"""
    # weaver/config/config.py -> weaver/config -> weaver -> repo root
    project_root = os.path.dirname(os.path.dirname(CONFIG_DIR))

    return {
        # Playback / sampling
        "curve_samples": 200,
        "noise_factor": 0.3,
        "default_position": [50.0, 50.0],

        # Pose blending
        "blend_duration": 0.8,
        "animation_cues_file": os.path.join(CONFIG_DIR, "animation_cues.yaml"),

        # Edit feedback
        "debounce_seconds": 0.5,
        "discard_stale_feedback": True,
        "feedback_fallback_message": "Could not get AI feedback for this change.",

        # Scene analysis frame capture
        "analysis_frame_count": 3,
        "analysis_frame_offset": 0.5,

        # Presets
        "presets_file": os.path.join(CONFIG_DIR, "presets.yaml"),

        # Model configuration for the director (analysis + feedback)
        "director_model_provider": "gemini",
        "director_model_id": "gemini-2.5-flash",
        "director_model_api_key": "",
        "director_model_base_url": "",
        "director_model_extra_params": "",

        # Logging
        "log_file": os.path.join(project_root, "logs", "weaver.log"),
        "log_level": "INFO",

        # Other settings
        "proxy_host": "",
        "proxy_port": "",
    }


def get_default_base_url(provider: str) -> str:
    p = (provider or "").lower()
    if p == "openai":
        return "https://api.openai.com/v1"
    if p == "gemini":
        return "https://generativelanguage.googleapis.com/v1beta/openai/"
    if p == "deepseek":
        return "https://api.deepseek.com"
    return ""


def _as_bool(value: str) -> bool:
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


# env var -> (config key, converter)
ENV_OVERRIDES = {
    "WEAVER_CURVE_SAMPLES": ("curve_samples", int),
    "WEAVER_NOISE_FACTOR": ("noise_factor", float),
    "WEAVER_BLEND_DURATION": ("blend_duration", float),
    "WEAVER_DEBOUNCE_SECONDS": ("debounce_seconds", float),
    "WEAVER_DISCARD_STALE_FEEDBACK": ("discard_stale_feedback", _as_bool),
    "WEAVER_FEEDBACK_FALLBACK_MESSAGE": ("feedback_fallback_message", str),
    "WEAVER_ANIMATION_CUES_FILE": ("animation_cues_file", str),
    "WEAVER_PRESETS_FILE": ("presets_file", str),
    "DIRECTOR_MODEL_PROVIDER": ("director_model_provider", str),
    "DIRECTOR_MODEL_ID": ("director_model_id", str),
    "DIRECTOR_MODEL_API_KEY": ("director_model_api_key", str),
    "DIRECTOR_MODEL_BASE_URL": ("director_model_base_url", str),
    "DIRECTOR_MODEL_EXTRA_PARAMS": ("director_model_extra_params", str),
    "LOG_FILE": ("log_file", str),
    "LOG_LEVEL": ("log_level", str),
    "PROXY_HOST": ("proxy_host", str),
    "PROXY_PORT": ("proxy_port", str),
}


def _read_env_file(env_file: Optional[str]) -> Dict[str, str]:
    if env_file is None:
        project_root = os.path.dirname(os.path.dirname(CONFIG_DIR))
        weaver_root = os.path.dirname(CONFIG_DIR)
        env_candidates = [
            os.path.join(weaver_root, ".env"),
            os.path.join(project_root, ".env"),
        ]
        env_file = next((p for p in env_candidates if os.path.exists(p)), None)
    if not env_file or not os.path.exists(env_file):
        return {}
    return {k: v for k, v in dotenv_values(env_file).items() if v is not None}


def load_config(
    config_file: Optional[str] = None,
    env_file: Optional[str] = None,
    environ: Optional[Dict[str, str]] = None,
) -> Tuple[str, Dict[str, Any]]:
    """Load configuration from a TOML file merged over defaults, then apply .env and environment overrides."""
    if config_file is None:
        config_file = os.environ.get("WEAVER_CONFIG_FILE") or os.path.join(CONFIG_DIR, "config.toml")
    config_file = os.path.expanduser(config_file)

    config = get_default_config()
    if os.path.exists(config_file):
        with open(config_file, "r", encoding="utf-8") as f:
            config.update(toml.load(f))

    env_vars = _read_env_file(env_file)
    env_vars.update(os.environ if environ is None else environ)

    for env_key, (key, convert) in ENV_OVERRIDES.items():
        raw = env_vars.get(env_key)
        if raw is None or raw == "":
            continue
        try:
            config[key] = convert(raw)
        except ValueError:
            raise ValueError(f"Invalid value for {env_key}: {raw!r}") from None

    if not str(config.get("director_model_base_url") or "").strip():
        config["director_model_base_url"] = get_default_base_url(config["director_model_provider"])

    config["log_file"] = os.path.expanduser(config["log_file"])

    # Set up proxy settings if configured
    proxy_host = config.get("proxy_host")
    proxy_port = config.get("proxy_port")
    if proxy_host and proxy_port:
        os.environ["http_proxy"] = f"http://{proxy_host}:{proxy_port}"
        os.environ["https_proxy"] = f"http://{proxy_host}:{proxy_port}"

    return config_file, config


CONFIG_FILE, config = load_config()
