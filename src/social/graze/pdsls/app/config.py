"""
Configuration Module for PDSls

Settings are loaded from environment variables through pydantic-settings, with defaults that
work against the public network. Shared resources are handed to request handlers through typed
aiohttp AppKeys.
"""

from typing import Final, Literal, Optional
import logging
from pydantic import Field, PositiveInt
from pydantic_settings import BaseSettings
from aiohttp import web
from aiohttp import ClientSession

from social.graze.pdsls.app.metrics import MetricsClient
from social.graze.pdsls.atproto.pds import DEFAULT_PDS_STATE_URL
from social.graze.pdsls.resolve.handle import IdentityResolver

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings.

    Environment variables map onto fields by name, e.g. PLC_HOSTNAME or RECORD_PAGE_SIZE.
    """

    debug: bool = False
    """
    Enable debug logging of every XRPC exchange and HTTP trace hooks.
    Set with DEBUG=true environment variable.
    """

    http_port: int = Field(alias="port", default=5200)
    """
    HTTP port for the web service to listen on.
    Set with PORT environment variable.
    """

    plc_hostname: str = "plc.directory"
    """
    Hostname of the PLC directory used to resolve did:plc DIDs.
    Set with PLC_HOSTNAME environment variable.
    """

    sentry_dsn: Optional[str] = None
    """
    Sentry DSN for error reporting. No error reporting if not set.
    Set with SENTRY_DSN environment variable.
    """

    record_page_size: PositiveInt = 100
    """Records requested per com.atproto.repo.listRecords page."""

    repo_page_size: PositiveInt = 1000
    """Repositories requested per com.atproto.sync.listRepos page."""

    pds_state_url: str = DEFAULT_PDS_STATE_URL
    """
    Community scraping state listing known PDS hosts, used for input suggestions.
    Set with PDS_STATE_URL environment variable.
    """

    metrics_backend: Literal["telegraf", "none"] = "none"
    """
    Where metrics go: 'telegraf' (StatsD) or 'none'.
    Set with METRICS_BACKEND environment variable.
    """

    statsd_host: str = Field(alias="TELEGRAF_HOST", default="telegraf")
    statsd_port: int = Field(alias="TELEGRAF_PORT", default=8125)

    statsd_prefix: str = "pdsls"
    """Prefix for all StatsD metrics from this service."""


SettingsAppKey: Final = web.AppKey("settings", Settings)
"""AppKey for accessing the application settings"""

SessionAppKey: Final = web.AppKey("http_session", ClientSession)
"""AppKey for accessing the shared aiohttp client session"""

ResolverAppKey: Final = web.AppKey("identity_resolver", IdentityResolver)
"""AppKey for accessing the identity resolver bound to the shared session"""

MetricsClientAppKey: Final = web.AppKey("metrics_client", MetricsClient)
"""AppKey for accessing the metrics client"""
