"""
Configuration Module
====================

Resolves the effective settings of one call by layering, field by field:

1. call-site overrides
2. process-wide defaults
3. environment variables
4. built-in defaults

Classes
-------
ConfigOverrides
    The enumerated set of settings a caller may override.
Config
    Fully resolved, immutable settings for one call.

Functions
---------
resolve_config
    Merge the layers into a Config.

Environment Variables
---------------------
AWS_REGION, AWS_DEFAULT_REGION
    Region, in that order of preference.
AWS_MAX_ATTEMPTS
    Maximum attempts per call, retries included.

Example
-------
>>> from awsrpc.core.config import ConfigOverrides, resolve_config
>>>
>>> defaults = ConfigOverrides(region="eu-west-1", max_attempts=5)
>>> config = resolve_config("firehose", ConfigOverrides(max_attempts=2), defaults)
>>> config.host, config.max_attempts
('firehose.eu-west-1.amazonaws.com', 2)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from awsrpc.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from awsrpc.auth.cache import CredentialCache
    from awsrpc.auth.providers import Credentials
    from awsrpc.transport.dispatcher import Dispatcher

ENV_REGION = ("AWS_REGION", "AWS_DEFAULT_REGION")
ENV_MAX_ATTEMPTS = "AWS_MAX_ATTEMPTS"


@dataclass(frozen=True)
class ConfigOverrides:
    """
    Settings a caller may override; ``None`` means "not set here".

    Used both for call-site overrides and for process-wide defaults.

    Parameters
    ----------
    region : str, optional
        AWS region, e.g. ``us-east-1``.
    scheme : str, optional
        ``https`` or ``http``.
    host : str, optional
        Endpoint host. Defaults to ``{service}.{region}.amazonaws.com``.
    port : int, optional
        Endpoint port, when not the scheme's default.
    access_key_id, secret_access_key, session_token : str, optional
        Static credentials, tried before any other credential source.
    max_attempts : int, optional
        Attempts per call, the first one included.
    base_backoff : float, optional
        Delay in seconds before the first retry.
    max_backoff : float, optional
        Upper bound for any retry delay, in seconds.
    throttle_multiplier : float, optional
        Factor applied to the base delay after throttling.
    timeout : float, optional
        Per-attempt read timeout in seconds.
    connect_timeout : float, optional
        Per-attempt connect timeout in seconds.
    dispatcher : Dispatcher, optional
        HTTP transport used to send requests.
    credential_cache : CredentialCache, optional
        Shared cache used to obtain credentials.
    """

    region: Optional[str] = None
    scheme: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None
    max_attempts: Optional[int] = None
    base_backoff: Optional[float] = None
    max_backoff: Optional[float] = None
    throttle_multiplier: Optional[float] = None
    timeout: Optional[float] = None
    connect_timeout: Optional[float] = None
    dispatcher: Optional["Dispatcher"] = None
    credential_cache: Optional["CredentialCache"] = None


BUILTIN_DEFAULTS = ConfigOverrides(
    scheme="https",
    max_attempts=3,
    base_backoff=1.0,
    max_backoff=20.0,
    throttle_multiplier=2.0,
    timeout=30.0,
    connect_timeout=5.0,
)


@dataclass(frozen=True)
class Config:
    """
    Resolved settings for one call.

    Immutable for the whole call: retries may fetch fresh credentials but
    never re-resolve region or endpoint.
    """

    service: str
    region: str
    host: str
    scheme: str = "https"
    port: Optional[int] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None
    max_attempts: int = 3
    base_backoff: float = 1.0
    max_backoff: float = 20.0
    throttle_multiplier: float = 2.0
    timeout: float = 30.0
    connect_timeout: float = 5.0
    dispatcher: Optional["Dispatcher"] = None
    credential_cache: Optional["CredentialCache"] = None

    @property
    def host_header(self) -> str:
        """Value of the ``host`` header, port included when non-default."""
        default_port = 443 if self.scheme == "https" else 80
        if self.port is None or self.port == default_port:
            return self.host
        return f"{self.host}:{self.port}"

    @property
    def endpoint_url(self) -> str:
        return f"{self.scheme}://{self.host_header}"

    @property
    def has_static_credentials(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)

    def static_credentials(self) -> Optional["Credentials"]:
        """Credentials supplied directly in configuration, if any."""
        if not self.has_static_credentials:
            return None
        from awsrpc.auth.providers import Credentials

        return Credentials(
            access_key_id=self.access_key_id,  # type: ignore[arg-type]
            secret_access_key=self.secret_access_key,  # type: ignore[arg-type]
            session_token=self.session_token,
        )


def environment_layer(environ: Optional[Mapping[str, str]] = None) -> ConfigOverrides:
    """
    Read the settings carried by environment variables.

    Raises
    ------
    ConfigurationError
        If AWS_MAX_ATTEMPTS is not an integer.
    """
    env = os.environ if environ is None else environ

    region = None
    for name in ENV_REGION:
        if env.get(name):
            region = env[name]
            break

    max_attempts = None
    raw_attempts = env.get(ENV_MAX_ATTEMPTS)
    if raw_attempts:
        try:
            max_attempts = int(raw_attempts)
        except ValueError:
            raise ConfigurationError(
                f"{ENV_MAX_ATTEMPTS} must be an integer",
                details={"value": raw_attempts},
            )

    return ConfigOverrides(region=region, max_attempts=max_attempts)


def merge_layers(*layers: Optional[ConfigOverrides]) -> Dict[str, Any]:
    """
    Merge override layers field by field; earlier layers win.

    Returns
    -------
    dict
        Field name to the first non-None value found, or None.
    """
    merged: Dict[str, Any] = {}
    for f in fields(ConfigOverrides):
        merged[f.name] = None
        for layer in layers:
            if layer is None:
                continue
            value = getattr(layer, f.name)
            if value is not None:
                merged[f.name] = value
                break
    return merged


def resolve_config(
    service: str,
    overrides: Optional[ConfigOverrides] = None,
    defaults: Optional[ConfigOverrides] = None,
    environ: Optional[Mapping[str, str]] = None,
    builtins: ConfigOverrides = BUILTIN_DEFAULTS,
) -> Config:
    """
    Resolve the effective configuration for a call.

    Parameters
    ----------
    service : str
        Signing name of the target service, used for the default host.
    overrides : ConfigOverrides, optional
        Call-site settings.
    defaults : ConfigOverrides, optional
        Process-wide settings.
    environ : mapping, optional
        Environment to read; ``os.environ`` when omitted.
    builtins : ConfigOverrides
        Lowest-priority layer.

    Returns
    -------
    Config
        Resolved configuration.

    Raises
    ------
    ConfigurationError
        If no region is configured or a setting is out of range.
    """
    merged = merge_layers(overrides, defaults, environment_layer(environ), builtins)

    region = merged.pop("region")
    if not region:
        raise ConfigurationError(
            "No AWS region configured",
            details={
                "service": service,
                "hint": "Set AWS_REGION or pass region= in ConfigOverrides",
            },
        )

    # Static credentials are taken as a unit from a single layer
    for layer in (overrides, defaults):
        if layer is not None and (layer.access_key_id or layer.secret_access_key):
            merged["access_key_id"] = layer.access_key_id
            merged["secret_access_key"] = layer.secret_access_key
            merged["session_token"] = layer.session_token
            break

    _validate(merged)

    host = merged.pop("host") or f"{service}.{region}.amazonaws.com"
    values = {k: v for k, v in merged.items() if v is not None}
    return Config(service=service, region=region, host=host, **values)


def _validate(merged: Dict[str, Any]) -> None:
    max_attempts = merged.get("max_attempts")
    if max_attempts is not None and max_attempts < 1:
        raise ConfigurationError(
            "max_attempts must be at least 1",
            details={"max_attempts": max_attempts},
        )
    for name in ("base_backoff", "max_backoff", "timeout", "connect_timeout"):
        value = merged.get(name)
        if value is not None and value < 0:
            raise ConfigurationError(
                f"{name} must not be negative", details={name: value}
            )
    if merged.get("scheme") not in (None, "http", "https"):
        raise ConfigurationError(
            "scheme must be 'http' or 'https'",
            details={"scheme": merged.get("scheme")},
        )
    if bool(merged.get("access_key_id")) != bool(merged.get("secret_access_key")):
        raise ConfigurationError(
            "Static credentials need both access_key_id and secret_access_key"
        )
