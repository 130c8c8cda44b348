"""Read and write ~/.icarebridge/config.json (camelCase on disk, snake_case in the model)."""

import json
import re
from pathlib import Path
from typing import Any

from icarebridge.config.schema import Config

_CONFIG_DIR = Path.home() / ".icarebridge"
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def get_config_path() -> Path:
    """Default location of the config file."""
    return _CONFIG_DIR / "config.json"


def get_logs_dir() -> Path:
    """Directory for the CLI's rotating log files."""
    return _CONFIG_DIR / "logs"


def load_config(config_path: Path | None = None) -> Config:
    """
    Load the config file, falling back to defaults when it does not exist.

    Raises:
        ValueError: The file exists but is not a JSON object matching the schema.
    """
    path = config_path or get_config_path()
    if not path.exists():
        return Config()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("config must be a JSON object")
        return Config.model_validate(convert_keys(data))
    except (json.JSONDecodeError, ValueError) as e:
        raise ValueError(
            f"Failed to load config from {path}: {e}. "
            "Fix the file or delete it to use the defaults."
        ) from e


def save_config(config: Config, config_path: Path | None = None) -> Path:
    """Write ``config`` as camelCase JSON and return the path written."""
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(convert_to_camel(config.model_dump()), indent=2) + "\n", encoding="utf-8")
    return path


def convert_keys(data: Any) -> Any:
    """Recursively rename camelCase keys to snake_case."""
    return _rename_keys(data, camel_to_snake)


def convert_to_camel(data: Any) -> Any:
    """Recursively rename snake_case keys to camelCase."""
    return _rename_keys(data, snake_to_camel)


def _rename_keys(data: Any, rename) -> Any:
    if isinstance(data, dict):
        return {rename(k): _rename_keys(v, rename) for k, v in data.items()}
    if isinstance(data, list):
        return [_rename_keys(item, rename) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)
