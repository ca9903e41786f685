"""Configuration source loading and the typed PropertyStore."""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

import yaml
from pydantic_core import core_schema

from ..errors import ConfigLoadError, ConfigParseError

SAMPLES_DIR = Path(__file__).resolve().parent.parent / "samples"
DEFAULT_SEARCH_PATHS = (Path("config"), SAMPLES_DIR)

YAML_SUFFIXES = (".yaml", ".yml")

INT_MIN, INT_MAX = -(2 ** 31), 2 ** 31 - 1
LONG_MIN, LONG_MAX = -(2 ** 63), 2 ** 63 - 1

_ENV_PATTERN = re.compile(r'\$\{([^}]+)\}')


class PropertyStore(Mapping[str, str]):
    """
    Read-only view over raw key/value configuration with typed accessors.

    Every accessor returns the supplied default untouched when the key is
    absent. A present value that does not parse as the requested type raises
    ConfigParseError.
    """

    def __init__(self, values: Optional[Mapping[str, str]] = None):
        self._values = MappingProxyType(dict(values or {}))

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"PropertyStore({len(self._values)} keys)"

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type, handler):
        return core_schema.is_instance_schema(cls)

    def get_string(self, key: str, default: Optional[str] = None) -> Optional[str]:
        if key not in self._values:
            return default
        return self._values[key]

    def get_bool(self, key: str, default: bool = False) -> bool:
        if key not in self._values:
            return default
        raw = self._values[key]
        value = raw.strip().lower()
        if value == "true":
            return True
        if value == "false":
            return False
        raise ConfigParseError(key, raw, "a boolean (true or false)")

    def get_int(self, key: str, default: int = 0) -> int:
        if key not in self._values:
            return default
        return self._parse_integer(key, INT_MIN, INT_MAX, "a 32-bit integer")

    def get_long(self, key: str, default: int = 0) -> int:
        if key not in self._values:
            return default
        return self._parse_integer(key, LONG_MIN, LONG_MAX, "a 64-bit integer")

    def _parse_integer(self, key: str, low: int, high: int, expected: str) -> int:
        raw = self._values[key]
        try:
            value = int(raw.strip(), 10)
        except ValueError:
            raise ConfigParseError(key, raw, expected) from None
        if not low <= value <= high:
            raise ConfigParseError(key, raw, expected)
        return value


@dataclass(frozen=True)
class PropertySource:
    """Raw configuration together with the file it was loaded from."""
    origin: Path
    properties: PropertyStore

    @property
    def directory(self) -> Path:
        return self.origin.parent


def resolve_resource(name: str, search_paths: Optional[Sequence[Path]] = None) -> Optional[Path]:
    """Find a configuration resource by path or by name in the search paths."""
    candidate = Path(name).expanduser()
    if candidate.is_file():
        return candidate.resolve()

    if candidate.is_absolute():
        return None

    for base in (search_paths if search_paths is not None else DEFAULT_SEARCH_PATHS):
        path = Path(base) / candidate
        if path.is_file():
            return path.resolve()

    return None


def load_properties(name: str, search_paths: Optional[Sequence[Path]] = None) -> PropertySource:
    """
    Load a configuration resource into a PropertyStore.

    Args:
        name: File path or bare resource name (e.g. ``json.properties``)
        search_paths: Directories searched when ``name`` is not a readable path

    Returns:
        PropertySource with the resolved origin and the loaded properties

    Raises:
        ConfigLoadError: If the resource is missing or cannot be read
        ConfigParseError: If a required ``${VAR}`` is not set
    """
    path = resolve_resource(name, search_paths)
    if path is None:
        raise ConfigLoadError(name, ConfigLoadError.NOT_FOUND, "not a file and not found in search paths")

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigLoadError(str(path), ConfigLoadError.UNREADABLE, str(e), cause=e) from e

    if path.suffix.lower() in YAML_SUFFIXES:
        raw = _parse_yaml(text, str(path))
    else:
        raw = parse_properties(text.splitlines())

    values = {key: substitute_env_vars(key, value) for key, value in raw.items()}
    return PropertySource(origin=path, properties=PropertyStore(values))


def parse_properties(lines: Iterable[str]) -> Dict[str, str]:
    """Parse Java-style ``.properties`` lines into a dict."""
    result: Dict[str, str] = {}
    pending: List[str] = []

    for line in lines:
        stripped = line.strip()
        if not pending and (not stripped or stripped[0] in "#!"):
            continue

        # Odd number of trailing backslashes continues the logical line
        trailing = len(stripped) - len(stripped.rstrip("\\"))
        if trailing % 2 == 1:
            pending.append(stripped[:-1])
            continue

        pending.append(stripped)
        key, value = _split_entry("".join(pending))
        pending = []
        if key:
            result[key] = value

    if pending:
        key, value = _split_entry("".join(pending))
        if key:
            result[key] = value

    return result


def _split_entry(entry: str):
    for index, char in enumerate(entry):
        if char in "=:" and (index == 0 or entry[index - 1] != "\\"):
            return entry[:index].strip(), entry[index + 1:].strip()
    parts = entry.split(None, 1)
    if len(parts) == 2:
        return parts[0], parts[1].strip()
    return entry.strip(), ""


def _parse_yaml(text: str, resource: str) -> Dict[str, str]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigLoadError(resource, ConfigLoadError.UNREADABLE, f"invalid YAML: {e}", cause=e) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigLoadError(resource, ConfigLoadError.UNREADABLE, "top level must be a mapping")

    flat: Dict[str, str] = {}
    _flatten(data, "", flat)
    return flat


def _flatten(data: Dict[Any, Any], prefix: str, out: Dict[str, str]) -> None:
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            _flatten(value, f"{name}.", out)
        elif isinstance(value, bool):
            out[name] = "true" if value else "false"
        elif value is None:
            out[name] = ""
        else:
            out[name] = str(value)


def substitute_env_vars(key: str, value: str) -> str:
    """
    Substitute environment variables in a configuration value.

    Supports syntax:
    - ${VAR_NAME} - Required variable
    - ${VAR_NAME:-default} - Optional variable with default value

    Raises:
        ConfigParseError: If a required environment variable is not set
    """
    def replace_env_var(match):
        var_expr = match.group(1)

        if ':-' in var_expr:
            var_name, default_value = var_expr.split(':-', 1)
            return os.getenv(var_name.strip(), default_value)

        var_name = var_expr.strip()
        env_value = os.getenv(var_name)
        if env_value is None:
            raise ConfigParseError(key, value, f"environment variable '{var_name}' to be set")
        return env_value

    return _ENV_PATTERN.sub(replace_env_var, value)
