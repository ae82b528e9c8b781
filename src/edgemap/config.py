"""
Configuration loading and resolution.

The configuration file is a JSON document validated with Pydantic. Global
defaults can be overridden per worker (``workers[].config``) and per module;
at every override point the most specific value wins.

Process-level settings (log level, timeouts, paths) come from ``EDGEMAP_*``
environment variables or a ``.env`` file.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, TypeVar

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from edgemap.discovery import LOCALE_SOURCES, PAGE_SOURCES
from edgemap.exceptions import ConfigurationError, generate_correlation_id
from edgemap.models import ApiConfig, AuthConfig, Filter, Locale, ProxyConfig, ReplaceRule
from edgemap.script import DeploymentMode
from edgemap.upload import DEFAULT_API_URL
from edgemap.utils import resolve_endpoint

load_dotenv()


class EdgemapSettings(BaseSettings):
    """Process settings read from the environment."""

    model_config = ConfigDict(
        env_prefix="EDGEMAP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    config_path: Path = Field(default=Path("edgemap.json"), description="Configuration file")
    log_level: str = Field(default="INFO", description="Logging level")
    timeout: float = Field(default=60.0, gt=0, description="HTTP request timeout (seconds)")
    user_agent: str | None = Field(default=None, description="Custom user agent string")
    api_url: str = Field(default=DEFAULT_API_URL, description="Root of the script upload API")
    template_dir: Path | None = Field(default=None, description="Directory overriding packaged worker templates")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid}")
        return v.upper()


# =============================================================================
# File schema
# =============================================================================


class ModuleConfig(BaseModel):
    """One locale listing + one page listing and their overrides."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    locales_api: ApiConfig
    pages_api: ApiConfig
    filter: Filter | None = None
    replace: list[ReplaceRule] | None = None
    locale_base_urls: dict[Locale, str] | None = None
    proxy: ProxyConfig | None = None
    force_split_by_locale: bool = False

    @field_validator("locales_api")
    @classmethod
    def validate_locales_type(cls, v: ApiConfig) -> ApiConfig:
        if v.type not in LOCALE_SOURCES:
            raise ValueError(f"Unsupported locales API type: {v.type!r}. Must be one of: {', '.join(sorted(LOCALE_SOURCES))}")
        return v

    @field_validator("pages_api")
    @classmethod
    def validate_pages_type(cls, v: ApiConfig) -> ApiConfig:
        if v.type not in PAGE_SOURCES:
            raise ValueError(f"Unsupported pages API type: {v.type!r}. Must be one of: {', '.join(sorted(PAGE_SOURCES))}")
        return v


class LayerConfig(BaseModel):
    """Settings that can be set globally and overridden per worker."""

    model_config = ConfigDict(extra="forbid")

    base_url: str | None = None
    filter: Filter | None = None
    replace: list[ReplaceRule] | None = None
    locale_base_urls: dict[Locale, str] | None = None
    proxy: ProxyConfig | None = None
    modules: list[ModuleConfig] | None = None


class WorkerConfig(BaseModel):
    """One deployable worker: credentials plus optional overrides."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    account_id: str
    auth: AuthConfig
    deployment: Literal["inline", "bindings"] = "inline"
    config: LayerConfig = Field(default_factory=LayerConfig)


class Config(LayerConfig):
    """Root of the configuration file."""

    workers: list[WorkerConfig] = Field(min_length=1)
    isolate_failures: bool = False


# =============================================================================
# Resolved, immutable run configuration
# =============================================================================


@dataclass(frozen=True)
class Module:
    """A fully resolved discovery unit."""

    name: str
    locales_api: ApiConfig
    pages_api: ApiConfig
    filter: Filter
    replace: tuple[ReplaceRule, ...]
    base_url: str
    locale_base_urls: dict[Locale, str] = field(default_factory=dict)
    proxy: ProxyConfig | None = None
    force_split_by_locale: bool = False


@dataclass(frozen=True)
class Worker:
    """A fully resolved worker and the modules it publishes."""

    name: str
    account_id: str
    auth: AuthConfig
    deployment: DeploymentMode
    modules: tuple[Module, ...]
    proxy: ProxyConfig | None = None


T = TypeVar("T")


def _first(*values: T | None) -> T | None:
    """Return the first value that is not None."""
    for value in values:
        if value is not None:
            return value
    return None


def resolve_workers(config: Config) -> list[Worker]:
    """
    Resolve layered configuration into immutable workers.

    Args:
        config: Validated configuration file.

    Returns:
        Workers in declaration order.

    Raises:
        ConfigurationError: If a worker has no base URL or no modules.
    """
    correlation_id = generate_correlation_id()
    workers: list[Worker] = []
    for worker in config.workers:
        layer = worker.config
        base_url = _first(layer.base_url, config.base_url)
        if not base_url:
            raise ConfigurationError(
                f"Missing base_url for worker {worker.name}",
                correlation_id=correlation_id,
                context={"worker": worker.name},
            )
        filter_ = _first(layer.filter, config.filter) or Filter()
        replace = _first(layer.replace, config.replace) or []
        locale_base_urls = _first(layer.locale_base_urls, config.locale_base_urls) or {}
        proxy = _first(layer.proxy, config.proxy)
        module_configs = _first(layer.modules, config.modules) or []
        if not module_configs:
            raise ConfigurationError(
                f"Worker {worker.name} has no modules",
                correlation_id=correlation_id,
                context={"worker": worker.name},
            )

        modules = tuple(
            Module(
                name=module.name,
                locales_api=module.locales_api.model_copy(
                    update={"url": resolve_endpoint(base_url, module.locales_api.url)}
                ),
                pages_api=module.pages_api.model_copy(update={"url": resolve_endpoint(base_url, module.pages_api.url)}),
                filter=_first(module.filter, filter_) or Filter(),
                replace=tuple(_first(module.replace, replace) or ()),
                base_url=base_url,
                locale_base_urls=dict(_first(module.locale_base_urls, locale_base_urls) or {}),
                proxy=_first(module.proxy, proxy),
                force_split_by_locale=module.force_split_by_locale,
            )
            for module in module_configs
        )
        workers.append(
            Worker(
                name=worker.name,
                account_id=worker.account_id,
                auth=worker.auth,
                deployment=worker.deployment,
                modules=modules,
                proxy=proxy,
            )
        )
    return workers


def parse_config(data: object, config_path: str | None = None) -> Config:
    """
    Validate a configuration document.

    Raises:
        ConfigurationError: If validation fails.
    """
    try:
        return Config.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        raise ConfigurationError(f"Invalid configuration: {problems}", config_path=config_path) from e


def load_config(path: Path) -> Config:
    """
    Read and validate a JSON configuration file.

    Raises:
        ConfigurationError: If the file is missing, not JSON, or invalid.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationError(f"Configuration file not found: {path}", config_path=str(path)) from e
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not read configuration file {path}: {e}", config_path=str(path)) from e
    return parse_config(data, config_path=str(path))
