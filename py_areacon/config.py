"""Configuration management."""

import logging

import structlog
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-level settings pulled from AREACON_* environment variables."""

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="console", description="Log renderer (console or json)")

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")

    # Default center seeding
    default_center_multiplier: float = Field(
        default=0.01, gt=0, description="Initial inward offset of default centers from the first region edge"
    )
    default_center_max_halvings: int = Field(
        default=10, ge=0, description="How often the offset may be halved before giving up"
    )

    # Power diagram construction
    bisection_max_iterations: int = Field(
        default=10000, ge=1, description="Iteration cap of the radical point search"
    )
    boundary_max_expansions: int = Field(
        default=200, ge=1, description="Cap on half-plane growth steps before failing"
    )

    # Weight correction
    empty_cell_weight_bump: float = Field(
        default=2.0, gt=0, description="Weight bump for a vanished cell, in units of weights_step"
    )

    model_config = SettingsConfigDict(env_prefix="AREACON_", env_file=".env", extra="ignore")


def configure_logging(settings: "Settings" = None):
    """Install the structlog pipeline used by the API and scripts."""
    settings = settings or Settings()
    logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


settings = Settings()
