"""Config Loader - Loads client configuration from YAML.

Example file:

    base_address: https://api.example.com/v1
    encoding: utf-8
    timeout: 10
    serializer: json
    deserializer: xml
    default_headers:
      Authorization: Bearer ${API_TOKEN}
      X-Region: ${REGION:-eu}

``${NAME}`` is replaced with the environment variable NAME anywhere a string
appears; ``${NAME:-fallback}`` uses *fallback* when NAME is unset.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Callable

import yaml
from pydantic import ValidationError

from tiny_http.errors import ConfigError
from tiny_http.models import ClientConfig
from tiny_http.serialization import JsonDeserializer, JsonSerializer
from tiny_http.xml_body import XmlDeserializer, XmlSerializer

SERIALIZERS: dict[str, Callable[[], Any]] = {
    "json": JsonSerializer,
    "xml": XmlSerializer,
}

DESERIALIZERS: dict[str, Callable[[], Any]] = {
    "json": JsonDeserializer,
    "xml": XmlDeserializer,
}

_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[^}:]+)(?::-(?P<fallback>[^}]*))?\}")


def load_client_config(config_path: Path | str) -> ClientConfig:
    """Read a YAML file, expand environment references and build a ClientConfig.

    Raises:
        ConfigError: If the file is missing, is not a YAML mapping, references an
            unset variable without fallback, or does not validate.
    """
    path = Path(config_path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e

    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(document, dict):
        raise ConfigError(f"{path} must contain a YAML mapping at the top level")

    return parse_client_config(expand_env(document))


def parse_client_config(raw_config: dict[str, Any]) -> ClientConfig:
    """Validate an already-loaded mapping into a ClientConfig.

    ``serializer`` / ``deserializer`` are given by name (see SERIALIZERS and
    DESERIALIZERS) and replaced by instances before validation.
    """
    data = dict(raw_config)
    if "serializer" in data:
        data["serializer"] = _lookup("serializer", data["serializer"], SERIALIZERS)
    if "deserializer" in data:
        data["deserializer"] = _lookup("deserializer", data["deserializer"], DESERIALIZERS)

    try:
        return ClientConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config structure: {e}") from e


def _lookup(kind: str, name: Any, registry: dict[str, Callable[[], Any]]) -> Any:
    if not isinstance(name, str) or name.lower() not in registry:
        available = ", ".join(sorted(registry))
        raise ConfigError(f"Unknown {kind} {name!r}. Available: {available}")
    return registry[name.lower()]()


def expand_env(node: Any) -> Any:
    """Return *node* with every ``${NAME}`` reference in its strings expanded.

    Mappings and lists are walked recursively; keys are left alone.
    """
    if isinstance(node, dict):
        return {key: expand_env(value) for key, value in node.items()}
    if isinstance(node, list):
        return [expand_env(item) for item in node]
    if isinstance(node, str):
        return _ENV_REFERENCE.sub(_resolve_reference, node)
    return node


def _resolve_reference(match: re.Match[str]) -> str:
    name = match.group("name")
    value = os.environ.get(name, match.group("fallback"))
    if value is None:
        raise ConfigError(f"Environment variable '{name}' is not set")
    return value
