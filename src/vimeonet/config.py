"""Configuration management with XDG paths, atomic writes, and precedence resolution.

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.vimeonet/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_cache_dir`.
* **Client config** -- a single :class:`~vimeonet.models.ClientConfig`
  JSON file, managed via :func:`load_config` and :func:`save_config`.
* **Precedence resolution** -- :func:`resolve_config` layers CLI flags
  and environment variables over the config file.
* **Credential resolution** -- :func:`resolve_credential` reads the
  access token from an environment variable or a file.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from vimeonet.exceptions import ConfigError
from vimeonet.models import ClientConfig

_APP_NAME = "vimeonet"
_CONFIG_FILENAME = "config.json"

ENV_BASE_URL = "VIMEONET_BASE_URL"
ENV_ACCESS_TOKEN = "VIMEONET_ACCESS_TOKEN"
ENV_CACHE_DIR = "VIMEONET_CACHE_DIR"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True on platforms that follow the XDG Base Directory spec."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from *env_var*, falling back under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/vimeonet/`` (default ``~/.config/vimeonet/``).
    On macOS/Windows: ``~/.vimeonet/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the response cache directory, creating it if necessary.

    Cached responses can be deleted at any time; the client simply goes
    back to the network.

    On Linux/BSD: ``$XDG_CACHE_HOME/vimeonet/`` (default ``~/.cache/vimeonet/``).
    On macOS/Windows: ``~/.vimeonet/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write *data* to *path* atomically using a sibling temp file and rename."""
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Client config ---


def config_path() -> Path:
    """Path to the client config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_config(path: Optional[Path] = None) -> ClientConfig:
    """Load the client configuration.

    Args:
        path: Config file to read. Defaults to :func:`config_path`.

    Returns:
        The deserialised :class:`~vimeonet.models.ClientConfig`, or a
        default instance when the file does not exist.

    Raises:
        ConfigError: If the file contains invalid JSON or fails validation.
    """
    path = path or config_path()
    if not path.is_file():
        return ClientConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ClientConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_config(config: ClientConfig, path: Optional[Path] = None) -> None:
    """Persist *config* atomically to *path* (default :func:`config_path`)."""
    data = config.model_dump(mode="json")
    _atomic_write(path or config_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def resolve_config(
    cli_base_url: Optional[str] = None,
    cli_cache_dir: Optional[str] = None,
    path: Optional[Path] = None,
) -> ClientConfig:
    """Resolve the effective configuration.

    Precedence (high to low):
        1. CLI flags (``cli_base_url``, ``cli_cache_dir``)
        2. Environment variables (``VIMEONET_BASE_URL``,
           ``VIMEONET_ACCESS_TOKEN``, ``VIMEONET_CACHE_DIR``)
        3. Config file
        4. Defaults
    """
    config = load_config(path)

    env_base_url = os.environ.get(ENV_BASE_URL)
    if cli_base_url is not None:
        config.base_url = cli_base_url
    elif env_base_url:
        config.base_url = env_base_url

    if os.environ.get(ENV_ACCESS_TOKEN):
        config.access_token_source = f"env:{ENV_ACCESS_TOKEN}"

    env_cache_dir = os.environ.get(ENV_CACHE_DIR)
    if cli_cache_dir is not None:
        config.cache.directory = cli_cache_dir
    elif env_cache_dir:
        config.cache.directory = env_cache_dir

    return config


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    raise ConfigError(f"Unknown credential source format: {source}")


def resolve_access_token(config: ClientConfig) -> Optional[str]:
    """Return the bearer token named by ``config.access_token_source``, if any."""
    if not config.access_token_source:
        return None
    return resolve_credential(config.access_token_source)
