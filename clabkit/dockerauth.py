"""Registry credentials taken from a docker client configuration file."""

from __future__ import annotations

import base64
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

log = logging.getLogger(__name__)

DOCKER_DEFAULT_CONFIG_DIR = ".docker"
DOCKER_DEFAULT_CONFIG_FILE = "config.json"

DEFAULT_DOMAIN = "docker.io"
_LEGACY_DEFAULT_DOMAIN = "index.docker.io"
_OFFICIAL_REPO_PREFIX = "library/"
_NAME_TOTAL_LENGTH_MAX = 255

_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
_DOMAIN = rf"{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*(?::[0-9]+)?"
_PATH_COMPONENT = r"[a-z0-9]+(?:(?:[._]|__|[-]*)[a-z0-9]+)*"
_NAME = rf"(?:{_DOMAIN}/)?{_PATH_COMPONENT}(?:/{_PATH_COMPONENT})*"
_TAG = r"[\w][\w.-]{0,127}"
_DIGEST = r"[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}"
_REFERENCE_RE = re.compile(rf"({_NAME})(?::{_TAG})?(?:@{_DIGEST})?", re.ASCII)
_ANCHORED_ID_RE = re.compile(r"[a-f0-9]{64}")
_B64URL_RE = re.compile(r"[A-Za-z0-9_-]*={0,2}")

_AUTH_STRING_PARTS = 2
_AUTH_STRING_SEP = ":"


@dataclass
class DockerConfig:
    """The "auths" section of a docker client config: registry domain to auth string."""

    auths: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "DockerConfig":
        """Build a config from parsed JSON; keys are matched case-insensitively."""
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError(f"docker config must be an object, got {type(data).__name__}")
        raw_auths = _lookup(data, "auths")
        if raw_auths is None:
            return cls()
        if not isinstance(raw_auths, Mapping):
            raise ValueError("docker config 'auths' must be an object")
        auths: dict[str, str] = {}
        for domain, entry in raw_auths.items():
            if entry is None:
                auths[domain] = ""
                continue
            if not isinstance(entry, Mapping):
                raise ValueError(f"docker config auth entry for {domain!r} must be an object")
            value = _lookup(entry, "auth")
            if value is not None and not isinstance(value, str):
                raise ValueError(f"docker config auth for {domain!r} must be a string")
            auths[domain] = value or ""
        return cls(auths=auths)


def _lookup(data: Mapping[str, Any], key: str) -> Any:
    if key in data:
        return data[key]
    for name, value in data.items():
        if isinstance(name, str) and name.lower() == key:
            return value
    return None


def _split_docker_domain(name: str) -> tuple[str, str]:
    slash = name.find("/")
    head = name[:slash] if slash != -1 else ""
    if slash == -1 or (
        not any(c in head for c in ".:") and head != "localhost" and head.lower() == head
    ):
        domain, remainder = DEFAULT_DOMAIN, name
    else:
        domain, remainder = head, name[slash + 1 :]
    if domain == _LEGACY_DEFAULT_DOMAIN:
        domain = DEFAULT_DOMAIN
    if domain == DEFAULT_DOMAIN and "/" not in remainder:
        remainder = _OFFICIAL_REPO_PREFIX + remainder
    return domain, remainder


def _normalized_domain(image_name: str) -> str:
    if _ANCHORED_ID_RE.fullmatch(image_name):
        raise ValueError(
            f"invalid repository name ({image_name}), cannot specify 64-byte hexadecimal strings"
        )
    domain, remainder = _split_docker_domain(image_name)
    remote_name = remainder.split(":", 1)[0]
    if remote_name.lower() != remote_name:
        raise ValueError("invalid reference format: repository name must be lowercase")
    reference = f"{domain}/{remainder}"
    match = _REFERENCE_RE.fullmatch(reference)
    if match is None:
        raise ValueError("invalid reference format")
    if len(match.group(1)) > _NAME_TOTAL_LENGTH_MAX:
        raise ValueError(
            f"repository name must not be more than {_NAME_TOTAL_LENGTH_MAX} characters"
        )
    return domain


def get_image_domain_name(image_name: str) -> str:
    """Registry domain of an image reference, or "" when the reference is invalid."""
    try:
        return _normalized_domain(image_name)
    except ValueError as exc:
        log.error("Unable to fetch image normalized name, error: %s", exc)
        return ""


def get_docker_config_path(config_path: str = "") -> str:
    """The given path, or ~/.docker/config.json when it is empty."""
    if config_path:
        return config_path
    return str(Path.home() / DOCKER_DEFAULT_CONFIG_DIR / DOCKER_DEFAULT_CONFIG_FILE)


def load_docker_config(config_path: str = "") -> DockerConfig:
    """Read and parse a docker client config file.

    Raises OSError when the file cannot be read and ValueError when it is not valid.
    """
    path = get_docker_config_path(config_path)
    try:
        content = Path(path).read_bytes()
    except OSError as exc:
        log.info("Could not read docker config: %s", exc)
        raise
    try:
        data = json.loads(content)
    except ValueError as exc:
        log.error("Failed to unmarshal docker config: %s", exc)
        raise
    return DockerConfig.from_dict(data)


def _decode_url_base64(text: str) -> bytes:
    text = text.replace("\r", "").replace("\n", "")
    if len(text) % 4 or not _B64URL_RE.fullmatch(text):
        raise ValueError(f"illegal base64 data in auth string {text!r}")
    return base64.urlsafe_b64decode(text)


def _go_json(obj: Any) -> str:
    encoded = json.dumps(obj, separators=(",", ":"), ensure_ascii=False)
    for char, escape in (
        ("<", "\\u003c"),
        (">", "\\u003e"),
        ("&", "\\u0026"),
        ("\u2028", "\\u2028"),
        ("\u2029", "\\u2029"),
    ):
        encoded = encoded.replace(char, escape)
    return encoded


def get_docker_auth(config: DockerConfig, image_name: str) -> str:
    """Registry auth header value for an image, or "" when the config has no entry for it."""
    domain = get_image_domain_name(image_name)
    if domain not in config.auths:
        return ""
    decoded = _decode_url_base64(config.auths[domain]).decode("utf-8", errors="replace")
    parts = decoded.split(_AUTH_STRING_SEP)
    if len(parts) != _AUTH_STRING_PARTS:
        raise ValueError("unexpected auth string")
    auth_config = {"username": parts[0].strip(), "password": parts[1].strip()}
    auth_config = {key: value for key, value in auth_config.items() if value}
    return base64.urlsafe_b64encode(_go_json(auth_config).encode("utf-8")).decode("ascii")