"""Configuration management for the uilocate element locator."""

import os

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables
load_dotenv()


class Config(BaseSettings):
    """Configuration class for the locator, refinement engine and API."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Ignore unexpected env vars rather than raising errors
    )

    # OpenAI (oracle) Configuration
    openai_api_key: str = Field(default="", description="OpenAI API key (required for live oracle calls)")
    openai_model: str = Field(default="gpt-4o")
    openai_max_tokens: int = Field(default=2000)
    openai_temperature: float = Field(default=0.1)
    openai_image_detail: str = Field(default="high")
    oracle_max_retries: int = Field(default=2, description="Extra attempts per oracle call site")
    oracle_backoff_seconds: float = Field(default=1.0)
    oracle_timeout_seconds: float = Field(default=60.0)

    # Progressive refinement
    max_refinement_depth: int = Field(default=2, description="Hard depth cap for crop refinement")
    max_api_calls: int = Field(default=10, description="Soft circuit breaker across one run")
    coverage_threshold: float = Field(default=0.3, description="Coverage ratio considered well isolated")
    accept_depth: int = Field(default=1, description="Depth from which any crop match is accepted")
    crop_multipliers: list[float] = Field(default=[0.4, 0.6, 0.8])
    high_overlap_threshold: int = Field(default=70)

    # Correction loop
    max_alignment_attempts: int = Field(default=3)
    correction_mode: str = Field(default="systematic", description="systematic or alignment")

    # Request pipeline rate limiting
    rate_limit_max_concurrent: int = Field(default=3)
    rate_limit_requests_per_minute: int = Field(default=20)
    rate_limit_min_interval: float = Field(default=1.0)
    rate_limit_poll_interval: float = Field(default=0.1)

    # Framework Configuration
    log_level: str = Field(default="INFO")
    log_to_file: bool = Field(default=True)
    log_dir: str = Field(default="logs")
    save_vision_debug: bool = Field(default=False)
    vision_debug_dir: str = Field(default="vision_debug")
    debug_export_dir: str = Field(default="debug_exports")

    # API Configuration
    api_host: str = Field(default="localhost")
    api_port: int = Field(default=8000)
    cors_origins: list[str] = Field(default=["http://localhost:3000"])

    def validate_config(self) -> bool:
        """Validate configuration values."""
        if not 0 < self.coverage_threshold <= 1:
            raise ValueError("Coverage threshold must be in (0, 1]")

        if self.max_api_calls <= 0 or self.max_refinement_depth <= 0:
            raise ValueError("API call and depth budgets must be positive")

        if not self.crop_multipliers or any(not 0 < m <= 1 for m in self.crop_multipliers):
            raise ValueError("Crop multipliers must be in (0, 1]")

        if self.correction_mode not in ("systematic", "alignment"):
            raise ValueError(f"Unknown correction mode: {self.correction_mode}")

        return True

    def validate_oracle_config(self) -> bool:
        """Validate the settings needed for live oracle calls."""
        if not self.openai_api_key:
            raise ValueError(
                "OPENAI_API_KEY not configured. Set it in a .env file or the environment."
            )
        return True

    def get_debug_export_path(self) -> str:
        """Get the full path to the debug export directory."""
        return os.path.join(os.getcwd(), self.debug_export_dir)


# Global configuration instance
try:
    config = Config()
except Exception as e:
    print(f"Warning: Could not load configuration: {e}")
    # Create a minimal config for basic functionality
    config = Config(openai_api_key="")
