"""Configuration module for verity-server using pydantic-settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class VerityServerSettings(BaseSettings):
    """Main configuration settings for verity-server.

    All settings can be overridden via environment variables with the VERITY_ prefix.
    For example, VERITY_OLLAMA_HOST will override the ollama_host setting.
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Ollama
    ollama_host: str = "http://localhost:11434"
    default_model: str = "llama3.2:latest"

    # Data directories (relative to data_dir)
    data_dir: str = "."
    conversations_dir: str = "conversations"

    # Generation
    system_prompt: str | None = None
    temperature: float = 0.7
    tool_temperature: float = 0.3
    strict_tool_mode: bool = True
    max_messages_in_prompt: int = 50
    max_output_tokens: int = 2048

    # Turn protocol
    max_tool_rounds: int = 8
    turn_deadline_seconds: float | None = None
    extra_claim_patterns: list[str] = Field(default_factory=list)

    # Tools (each group is enabled only when configured)
    filesystem_root: str = ""
    notes_vault: str = ""
    web_search_enabled: bool = False
    terminal_enabled: bool = False
    web_timeout_seconds: float = 15.0
    command_timeout_seconds: float = 30.0

    # CORS
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="VERITY_")

    @property
    def resolved_conversations_dir(self) -> Path:
        """Get the full path to the conversations directory."""
        return Path(self.data_dir) / self.conversations_dir
