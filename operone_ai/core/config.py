"""
Configuration Settings.

This module defines the application configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.

The agent core never reads ``settings`` on its own. Application wiring (see
``operone_ai.agent_core.factory``) converts the grouped views below into
constructor arguments.
"""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class OrchestratorConfig(BaseModel):
    """Task orchestrator configuration."""

    max_concurrent: int = Field(
        default=5,
        ge=1,
        alias="ORCHESTRATOR_MAX_CONCURRENT",
        description="Maximum number of tasks allowed in the RUNNING state at once",
    )

    model_config = {"populate_by_name": True}


class ToolExecutorConfig(BaseModel):
    """Tool executor configuration."""

    timeout_ms: int = Field(
        default=30_000,
        ge=1,
        alias="TOOL_EXECUTION_TIMEOUT_MS",
        description="Default per-call timeout in milliseconds",
    )
    cancel_on_timeout: bool = Field(
        default=False,
        alias="TOOL_CANCEL_ON_TIMEOUT",
        description="Cancel the underlying executor call when the timeout elapses",
    )
    history_max_size: int = Field(
        default=100,
        ge=1,
        alias="HISTORY_MAX_SIZE",
        description="Maximum number of entries kept by the in-memory history recorder",
    )

    model_config = {"populate_by_name": True}


class PipelineConfig(BaseModel):
    """Thinking pipeline configuration."""

    enable_memory: bool = Field(
        default=False,
        alias="PIPELINE_ENABLE_MEMORY",
        description="Enable memory retrieval before planning and outcome recording afterwards",
    )
    step_delay_ms: int = Field(
        default=100,
        ge=0,
        alias="PIPELINE_STEP_DELAY_MS",
        description="Simulated per-step delay used when no step runner is wired",
    )

    model_config = {"populate_by_name": True}


class ComplexityConfig(BaseModel):
    """Complexity detector thresholds."""

    simple_threshold: float = Field(
        default=0.3, ge=0.0, le=1.0, alias="COMPLEXITY_SIMPLE_THRESHOLD", description="Scores below are simple"
    )
    complex_threshold: float = Field(
        default=0.7, ge=0.0, le=1.0, alias="COMPLEXITY_COMPLEX_THRESHOLD", description="Scores at or above are complex"
    )
    max_simple_length: int = Field(
        default=100, ge=1, alias="COMPLEXITY_MAX_SIMPLE_LENGTH", description="Inputs longer than this add to the score"
    )

    model_config = {"populate_by_name": True}


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Application settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    # =====================================================================
    # Pydantic Configuration
    # =====================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Logging Configuration
    # =====================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="OPERONE_AI_LOG_LEVEL",
    )
    log_format: str = Field(
        default="detailed",
        description="Log line format (simple, detailed, json)",
        alias="OPERONE_AI_LOG_FORMAT",
    )
    log_file_dir: str = Field(
        default="logs",
        description="Directory for the log file when file logging is enabled",
        alias="OPERONE_AI_LOG_FILE_DIR",
    )
    enable_file_logging: bool = Field(
        default=False,
        description="Write logs to <log_file_dir>/operone_ai.log",
        alias="OPERONE_AI_ENABLE_FILE_LOGGING",
    )

    # =====================================================================
    # Orchestration / Execution Configuration
    # =====================================================================
    orchestrator_max_concurrent: int = Field(default=5, ge=1, alias="ORCHESTRATOR_MAX_CONCURRENT")
    tool_execution_timeout_ms: int = Field(default=30_000, ge=1, alias="TOOL_EXECUTION_TIMEOUT_MS")
    tool_cancel_on_timeout: bool = Field(default=False, alias="TOOL_CANCEL_ON_TIMEOUT")
    history_max_size: int = Field(default=100, ge=1, alias="HISTORY_MAX_SIZE")

    # =====================================================================
    # Thinking Pipeline Configuration
    # =====================================================================
    pipeline_enable_memory: bool = Field(default=False, alias="PIPELINE_ENABLE_MEMORY")
    pipeline_step_delay_ms: int = Field(default=100, ge=0, alias="PIPELINE_STEP_DELAY_MS")
    complexity_simple_threshold: float = Field(default=0.3, ge=0.0, le=1.0, alias="COMPLEXITY_SIMPLE_THRESHOLD")
    complexity_complex_threshold: float = Field(default=0.7, ge=0.0, le=1.0, alias="COMPLEXITY_COMPLEX_THRESHOLD")
    complexity_max_simple_length: int = Field(default=100, ge=1, alias="COMPLEXITY_MAX_SIMPLE_LENGTH")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def orchestrator(self) -> OrchestratorConfig:
        """Get task orchestrator configuration from environment variables."""
        return OrchestratorConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def tool_executor(self) -> ToolExecutorConfig:
        """Get tool executor configuration from environment variables."""
        return ToolExecutorConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def pipeline(self) -> PipelineConfig:
        """Get thinking pipeline configuration from environment variables."""
        return PipelineConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def complexity(self) -> ComplexityConfig:
        """Get complexity detector configuration from environment variables."""
        return ComplexityConfig.model_validate(self.model_dump(by_alias=True))


settings = Settings()
