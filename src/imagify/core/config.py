"""Configuration management for the Imagify relay and client adapter.

This module provides centralized configuration management using Pydantic Settings.
Configuration is loaded from environment variables with the IMAGIFY_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (IMAGIFY_* prefix)
2. .env file in the project root
3. Default values defined in ImagifyConfig

The upstream credential is the one exception to the prefix rule: it is read
from ``HF_TOKEN`` so the same variable works for every Hugging Face tool on
the host.

Example .env file:
    HF_TOKEN=hf_xxxxxxxxxxxxxxxx
    IMAGIFY_ALLOWED_ORIGIN=https://imagify.example.com
    IMAGIFY_MAX_ATTEMPTS=3
    IMAGIFY_SERVER_PORT=3001
    IMAGIFY_MAX_BODY_BYTES=2097152

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
The credential is read once at process start and treated as read-only
afterwards; to rotate it, change the environment and restart.

Usage Example
-------------
    from imagify.core.config import config

    print(config.upstream_url)
    print(config.is_configured)

Missing Credential
------------------
The server starts even when ``HF_TOKEN`` is unset.  Every generation request
then fails with a ConfigurationError instead of the process refusing to
start, so health checks still succeed and report ``configured: false``.
"""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_UPSTREAM_URL = (
    "https://router.huggingface.co/hf-inference/models/stabilityai/stable-diffusion-xl-base-1.0"
)


class ImagifyConfig(BaseSettings):
    """Main configuration for the Imagify relay.

    Values are loaded from environment variables with the IMAGIFY_ prefix,
    with fallback to defaults defined here.

    Attributes
    ----------
    Upstream Settings:
        hf_token : str | None
            Bearer credential for the upstream inference host (``HF_TOKEN``)
        upstream_url : str
            Fixed upstream text-to-image endpoint
        num_inference_steps : int
            Diffusion steps requested from the upstream model
        guidance_scale : float
            Classifier-free guidance scale requested from the upstream model
        request_timeout : float
            Per-attempt upstream timeout in seconds

    Retry Settings:
        max_attempts : int
            Total upstream attempts when rate limited (1-10)
        default_retry_after : float
            Sleep in seconds when ``Retry-After`` is absent or unparsable
        retry_after_cap : float
            Upper bound on a single server-supplied sleep

    Server Settings:
        allowed_origin : str
            The single origin allowed by CORS
        server_host : str
            Bind address for uvicorn
        server_port : int
            Bind port for uvicorn (1024-65535)
        max_body_bytes : int
            Largest accepted request body; larger bodies get 413 (2 MiB)

    Client Adapter Settings:
        relay_url : str
            Base URL of the relay the client adapter talks to
        reference_hint_length : int
            Number of data-URL characters embedded per reference image
        client_timeout : float
            Timeout in seconds for adapter calls to the relay

    Examples
    --------
    Create a custom configuration:

        >>> custom = ImagifyConfig(hf_token="hf_test", max_attempts=2)
        >>> custom.is_configured
        True
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="IMAGIFY_",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Upstream settings
    hf_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("hf_token", "HF_TOKEN", "IMAGIFY_HF_TOKEN"),
        description="Bearer credential for the upstream inference host",
        repr=False,
    )
    upstream_url: str = Field(
        default=DEFAULT_UPSTREAM_URL,
        description="Upstream text-to-image inference endpoint",
    )
    num_inference_steps: int = Field(
        default=30,
        description="Diffusion steps requested from the upstream model",
        ge=1,
        le=150,
    )
    guidance_scale: float = Field(
        default=7.5,
        description="Guidance scale requested from the upstream model",
        ge=0.0,
        le=30.0,
    )
    request_timeout: float = Field(
        default=120.0,
        description="Per-attempt upstream timeout in seconds",
        gt=0,
    )

    # Retry settings
    max_attempts: int = Field(
        default=3,
        description="Total upstream attempts when rate limited",
        ge=1,
        le=10,
    )
    default_retry_after: float = Field(
        default=2.0,
        description="Seconds to wait when Retry-After is absent or unparsable",
        ge=0,
    )
    retry_after_cap: float = Field(
        default=60.0,
        description="Upper bound on a single server-supplied Retry-After sleep",
        ge=0,
    )

    # Server settings
    allowed_origin: str = Field(
        default="http://localhost:5173",
        description="The single origin allowed to call the relay from a browser",
    )
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    server_port: int = Field(
        default=3001,
        description="Server port",
        ge=1024,
        le=65535,
    )
    max_body_bytes: int = Field(
        default=2 * 1024 * 1024,
        description="Largest accepted generate request body in bytes",
        ge=1,
    )

    # Client adapter settings
    relay_url: str = Field(
        default="http://localhost:3001",
        description="Base URL of the relay used by the client adapter",
    )
    reference_hint_length: int = Field(
        default=200,
        description="Characters of each reference data URL embedded in prompts",
        ge=0,
    )
    client_timeout: float = Field(
        default=300.0,
        description="Timeout in seconds for adapter calls to the relay",
        gt=0,
    )

    @property
    def is_configured(self) -> bool:
        """True when a non-blank upstream credential is present."""
        return bool(self.hf_token and self.hf_token.strip())


# Global configuration instance, loaded once from the environment and .env file.
config = ImagifyConfig()
