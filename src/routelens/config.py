"""Configuration loading for routelens.

Reads settings from the ``[tool.routelens]`` section of the analyzed
project's pyproject.toml, then applies environment overrides for anything
that varies per machine (model id, credentials, retry bounds).

routelens/src/routelens/config.py
"""

import logging
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional, Union

from dotenv import load_dotenv

from routelens.filesystem import walk_up_for_config

if sys.version_info >= (3, 11):

    import tomllib
else:

    try:

        import tomli as tomllib
    except ImportError as e:

        raise ImportError(
            "routelens requires Python 3.11+ or the 'tomli' package "
            "to parse pyproject.toml on Python 3.10. "
            "Hint: Try running: pip install tomli"
        ) from e

logger = logging.getLogger(__name__)

# Model defaults
DEFAULT_API_URL = "https://generativelanguage.googleapis.com/v1beta/openai"
DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 1200
DEFAULT_TOP_P = 0.9
DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_RETRIES = 3

# Pipeline defaults
DEFAULT_ROUTES_DIR = "src/routes"
DEFAULT_CONTROLLERS_DIR = "src/controllers"
DEFAULT_REQUESTS_DIR = "analysis_reports"
DEFAULT_INSIGHTS_DIR = "ai_reports"
DEFAULT_EXTENSIONS = (".js", ".mjs", ".cjs", ".jsx")
DEFAULT_ROUTER_NAMES = ("router",)


class Config:
    """Holds the routelens configuration loaded from pyproject.toml.

    Attributes:
    project_root: Directory containing the pyproject.toml, or None if none
    was found.
    settings: Read-only view of the ``[tool.routelens]`` table. Empty if
    the file or the section is missing or invalid.
    """

    def __init__(self, project_root: Path | None, config_dict: dict[str, Any]):
        self._project_root = project_root
        self._config_dict = config_dict.copy()

    @property
    def project_root(self) -> Path | None:
        return self._project_root

    @property
    def settings(self) -> Mapping[str, Union[str, bool, int, float, list, dict]]:
        return self._config_dict

    def get(self, key: str, default: Any = None) -> Any:
        """Gets a value from the loaded settings, returning default if not found."""
        return self._config_dict.get(key, default)

    def __getitem__(self, key: str) -> Any:
        if key not in self._config_dict:
            raise KeyError(
                f"Required configuration key '{key}' not found in "
                f"[tool.routelens] section of pyproject.toml."
            )
        return self._config_dict[key]

    def __contains__(self, key: str) -> bool:
        return key in self._config_dict

    def is_present(self) -> bool:
        """Checks if a project root was found and some settings were loaded."""
        return self._project_root is not None and bool(self._config_dict)


def load_config(start_path: Path) -> Config:
    """Loads routelens configuration by walking up from ``start_path``.

    Args:
    start_path: The directory to start searching upwards for pyproject.toml.

    Returns:
    A Config object. A missing file or section yields empty settings, never
    an exception.
    """
    project_root = walk_up_for_config(start_path)
    if not project_root:
        logger.debug(f"No pyproject.toml found above '{start_path}'")
        return Config(project_root=None, config_dict={})

    pyproject_path = project_root / "pyproject.toml"
    loaded_settings: dict[str, Any] = {}

    try:
        with open(pyproject_path, "rb") as f:
            full_toml_config = tomllib.load(f)

        tool_section = full_toml_config.get("tool")
        if not isinstance(tool_section, dict):
            logger.debug("pyproject.toml [tool] section is missing")
            routelens_config = {}
        else:
            routelens_config = tool_section.get("routelens", {})

        if isinstance(routelens_config, dict):
            loaded_settings = routelens_config
            if loaded_settings:
                logger.debug(f"Loaded [tool.routelens] settings from {pyproject_path}")
        else:
            logger.warning(
                f"[tool.routelens] section in {pyproject_path} is not a valid table. "
                "Ignoring this section."
            )

    except tomllib.TOMLDecodeError as e:
        logger.error(f"Error parsing {pyproject_path}: {e}. Using empty configuration.")
    except OSError as e:
        logger.error(f"Error reading {pyproject_path}: {e}. Using empty configuration.")

    return Config(project_root=project_root, config_dict=loaded_settings)


def load_env_files() -> Optional[Path]:
    """Load the first .env file found in the usual locations."""
    env_paths = [
        Path.cwd() / ".env",
        Path.home() / ".routelens.env",
    ]

    for env_path in env_paths:
        if env_path.exists():
            load_dotenv(env_path)
            logger.debug(f"Loaded environment from {env_path}")
            return env_path
    return None


@dataclass(frozen=True)
class ModelConfig:
    """Everything the model client needs, fixed at construction."""

    api_url: str = DEFAULT_API_URL
    model: str = DEFAULT_MODEL
    api_key: Optional[str] = None
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    top_p: float = DEFAULT_TOP_P
    top_k: Optional[int] = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    retries: int = DEFAULT_RETRIES

    def with_model(self, model: str) -> "ModelConfig":
        """Return a copy targeting another model id."""
        return replace(self, model=model)

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.api_url:
            missing.append("api_url")
        if not self.model:
            missing.append("model")
        if not self.api_key:
            missing.append("api_key")
        return missing


@dataclass(frozen=True)
class PipelineConfig:
    """Locations and switches for one pipeline run."""

    project_root: Path
    routes_dir: Path
    controllers_dir: Path
    requests_dir: Path
    insights_dir: Path
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    router_names: tuple[str, ...] = DEFAULT_ROUTER_NAMES
    controller_fallback_search: bool = False
    clear_requests_before_run: bool = True
    max_workers: int = 1
    extra_metadata: dict[str, Any] = field(default_factory=dict)


def _get_env_float(key: str) -> Optional[float]:
    """Get float value from environment variable."""
    value = os.getenv(key)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            logger.warning(f"Ignoring non-numeric {key}={value!r}")
    return None


def _get_env_int(key: str) -> Optional[int]:
    """Get integer value from environment variable."""
    value = os.getenv(key)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Ignoring non-integer {key}={value!r}")
    return None


def _first_set(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def get_model_config(config: Optional[Config] = None) -> ModelConfig:
    """Get typed model configuration.

    Environment variables win over ``[tool.routelens.model]`` which wins over
    the built-in defaults.

    Args:
        config: Optional Config object. If None, loads from current directory.
    """
    if config is None:
        config = load_config(Path.cwd())

    model_dict = config.get("model", {})
    if not isinstance(model_dict, dict):
        logger.warning("[tool.routelens.model] is not a table, using defaults")
        model_dict = {}

    top_k = _first_set(_get_env_int("ROUTELENS_TOP_K"), model_dict.get("top_k"))

    return ModelConfig(
        api_url=(
            os.getenv("ROUTELENS_API_URL")
            or model_dict.get("api_url")
            or DEFAULT_API_URL
        ),
        model=(
            os.getenv("ROUTELENS_MODEL")
            or os.getenv("GEMINI_DEFAULT_MODEL")
            or model_dict.get("model")
            or DEFAULT_MODEL
        ),
        api_key=(
            os.getenv("ROUTELENS_API_KEY")
            or os.getenv("GEMINI_API_KEY")
            or model_dict.get("api_key")
        ),
        temperature=float(
            _first_set(
                _get_env_float("ROUTELENS_TEMPERATURE"),
                model_dict.get("temperature"),
                DEFAULT_TEMPERATURE,
            )
        ),
        max_tokens=int(
            _first_set(
                _get_env_int("ROUTELENS_MAX_TOKENS"),
                model_dict.get("max_tokens"),
                DEFAULT_MAX_TOKENS,
            )
        ),
        top_p=float(
            _first_set(
                _get_env_float("ROUTELENS_TOP_P"),
                model_dict.get("top_p"),
                DEFAULT_TOP_P,
            )
        ),
        top_k=int(top_k) if top_k is not None else None,
        timeout_seconds=float(
            _first_set(
                _get_env_float("ROUTELENS_TIMEOUT"),
                model_dict.get("timeout"),
                DEFAULT_TIMEOUT_SECONDS,
            )
        ),
        retries=max(
            1,
            int(
                _first_set(
                    _get_env_int("ROUTELENS_RETRIES"),
                    model_dict.get("retries"),
                    DEFAULT_RETRIES,
                )
            ),
        ),
    )


def get_pipeline_config(config: Optional[Config] = None) -> PipelineConfig:
    """Get typed pipeline configuration with paths resolved against the project root."""
    if config is None:
        config = load_config(Path.cwd())

    root = config.project_root or Path.cwd()

    def _path(key: str, default: str) -> Path:
        value = Path(str(config.get(key, default)))
        return value if value.is_absolute() else root / value

    extensions = config.get("extensions", list(DEFAULT_EXTENSIONS))
    if not isinstance(extensions, list) or not extensions:
        logger.warning("Configuration key 'extensions' must be a non-empty list, using defaults")
        extensions = list(DEFAULT_EXTENSIONS)

    router_names = config.get("router_names", list(DEFAULT_ROUTER_NAMES))
    if not isinstance(router_names, list) or not router_names:
        logger.warning("Configuration key 'router_names' must be a non-empty list, using defaults")
        router_names = list(DEFAULT_ROUTER_NAMES)

    max_workers = config.get("max_workers", 1)
    if isinstance(max_workers, bool) or not isinstance(max_workers, int):
        logger.warning(
            f"Configuration key 'max_workers' must be an integer, got {max_workers!r}; using 1"
        )
        max_workers = 1
    max_workers = max(1, max_workers)

    metadata = config.get("metadata", {})
    if not isinstance(metadata, dict):
        metadata = {}

    return PipelineConfig(
        project_root=root,
        routes_dir=_path("routes_dir", DEFAULT_ROUTES_DIR),
        controllers_dir=_path("controllers_dir", DEFAULT_CONTROLLERS_DIR),
        requests_dir=_path("requests_dir", DEFAULT_REQUESTS_DIR),
        insights_dir=_path("insights_dir", DEFAULT_INSIGHTS_DIR),
        extensions=tuple(ext if ext.startswith(".") else f".{ext}" for ext in extensions),
        router_names=tuple(router_names),
        controller_fallback_search=bool(config.get("controller_fallback_search", False)),
        clear_requests_before_run=bool(config.get("clear_requests_before_run", True)),
        max_workers=max_workers,
        extra_metadata=metadata,
    )


__all__ = [
    "Config",
    "ModelConfig",
    "PipelineConfig",
    "get_model_config",
    "get_pipeline_config",
    "load_config",
    "load_env_files",
]
