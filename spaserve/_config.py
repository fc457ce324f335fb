"""
This module implements the Config class, a pydantic-settings model that
is loaded from environment variables and a JSON config file.
"""

import os
import json
from typing import Dict, Optional

from pydantic import ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    SettingsConfigDict,
    SettingsError,
)

from ._logging import logger


DEFAULT_STATIC_DIR = "./client/dist"
DEFAULT_SPA_FALLBACK_FILE = "index.html"
DEFAULT_PORT = 8080
DEFAULT_CONFIG_FILE = ".spaserve-config.json"

# Security headers whose default value can be overridden
SECURITY_HEADER_NAMES = (
    "x-content-type-options",
    "x-frame-options",
    "referrer-policy",
    "permissions-policy",
)

# The environment variables that are read, one per field
ENV_VARS = (
    "STATIC_DIR",
    "SPA_FALLBACK_FILE",
    "PORT",
    "CSP_HEADER",
    "HSTS_MAX_AGE",
    "SECURITY_HEADERS",
)


class ConfigError(ValueError):
    """ Raised when the configuration is invalid. This is fatal at startup.
    """


class ConfigFileSource(JsonConfigSettingsSource):
    """ Settings source for the JSON config file. Unknown keys are
    ignored with a warning; an unreadable file raises ``ConfigError``.
    """

    def _read_file(self, file_path):
        return read_config_file(file_path, self.settings_cls.model_fields)


class Config(BaseSettings):
    """ The resolved, read-only configuration of a spaserve app.

    Fields:

    * ``static_dir (str)``: the directory containing the build output.
    * ``spa_fallback_file (str)``: the file name (inside ``static_dir``) of
      the application shell, served for client-side routes. Must be
      non-empty and must not contain a path separator.
    * ``port (int)``: the port to listen on.
    * ``csp_header (str)``: value for the Content-Security-Policy header.
      Optional.
    * ``hsts_max_age (int)``: max-age for the Strict-Transport-Security
      header. Only sent over https. Optional.
    * ``security_headers (dict)``: values to use instead of the default
      X-Content-Type-Options, X-Frame-Options, Referrer-Policy and
      Permissions-Policy headers.

    Each field is read from the environment variable with the same name
    in uppercase (e.g. ``PORT``); empty variables count as unset. Keyword
    arguments take precedence over the environment, which takes precedence
    over the config file (see ``load_config()``). Invalid values raise
    ``ConfigError``.
    """

    model_config = SettingsConfigDict(
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
        json_file=None,
    )

    static_dir: str = DEFAULT_STATIC_DIR
    spa_fallback_file: str = DEFAULT_SPA_FALLBACK_FILE
    port: int = DEFAULT_PORT
    csp_header: Optional[str] = None
    hsts_max_age: Optional[int] = None
    security_headers: Dict[str, str] = {}

    def __init__(self, **values):
        try:
            super().__init__(**values)
        except ValidationError as err:
            raise ConfigError(_describe_errors(err)) from None
        except SettingsError as err:
            raise ConfigError(str(err)) from None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (init_settings, env_settings, ConfigFileSource(settings_cls))

    @field_validator("static_dir")
    @classmethod
    def check_static_dir(cls, value):
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("spa_fallback_file")
    @classmethod
    def check_fallback_file(cls, value):
        if not value:
            raise ValueError("must not be empty")
        for sep in ("/", os.sep, os.altsep):
            if sep and sep in value:
                raise ValueError(f"{value!r} must be a file name, not a path")
        return value

    @field_validator("port", "hsts_max_age", mode="before")
    @classmethod
    def reject_bools(cls, value):
        if isinstance(value, bool):
            raise ValueError(f"{value!r} is not an integer")
        return value

    @field_validator("port")
    @classmethod
    def check_port(cls, value):
        if not 0 <= value <= 65535:
            raise ValueError(f"{value} is out of range")
        return value

    @field_validator("hsts_max_age")
    @classmethod
    def check_hsts_max_age(cls, value):
        if value is not None and value < 0:
            raise ValueError(f"{value} is negative")
        return value

    @field_validator("csp_header")
    @classmethod
    def empty_csp_is_none(cls, value):
        return value or None

    @field_validator("security_headers")
    @classmethod
    def check_security_headers(cls, value):
        result = {}
        for key, val in value.items():
            if key.lower() not in SECURITY_HEADER_NAMES:
                raise ValueError(f"cannot override security header {key!r}")
            if val:
                result[key.lower()] = val
        return result

    @property
    def security_header_overrides(self):
        """ A dict mapping lowercase header names to override values
        (a copy, the config itself cannot be changed).
        """
        return dict(self.security_headers)


def _describe_errors(err):
    messages = []
    for error in err.errors():
        name = str(error["loc"][0]).upper() if error["loc"] else "config"
        messages.append(f"invalid {name}: {error['msg']}")
    return "; ".join(messages)


def read_config_file(filename, known_keys):
    """ Read a JSON config file and return a dict with the values for the
    given keys. Other keys are ignored (with a warning).
    """
    try:
        with open(filename, "rb") as f:
            data = json.loads(f.read().decode())
    except (OSError, UnicodeDecodeError) as err:
        raise ConfigError(f"Could not read config file {filename}: {err}")
    except json.JSONDecodeError as err:
        raise ConfigError(f"Invalid JSON in config file {filename}: {err}")
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {filename} must contain a JSON object.")

    values = {}
    for key, value in data.items():
        if key in known_keys:
            values[key] = value
        else:
            logger.warning(f"Ignoring unknown key {key!r} in config file {filename}")
    return values


def load_config(filename=None):
    """ Load the configuration. Environment variables take precedence
    over the config file, which takes precedence over the defaults.

    If ``filename`` is not given, the file ``.spaserve-config.json`` in
    the current directory is used when it exists. An explicitly given
    file must exist. Raises ``ConfigError`` if the resulting
    configuration is invalid.
    """
    if filename is None:
        if os.path.isfile(DEFAULT_CONFIG_FILE):
            filename = DEFAULT_CONFIG_FILE
    elif not os.path.isfile(filename):
        raise ConfigError(f"Config file not found: {filename}")

    if filename is None:
        return Config()

    class FileConfig(Config):
        model_config = SettingsConfigDict(json_file=str(filename))

    return FileConfig()
