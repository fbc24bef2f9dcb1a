"""Configuration schema using Pydantic.

Settings are read from environment variables. Top-level fields map to bare
names (``PROJECT_REF``, ``PORT``); nested sections use ``__`` as the
delimiter (``CHILD__READY_GRACE_SECONDS``, ``SSE__KEEPALIVE_INTERVAL_SECONDS``).
"""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ChildConfig(BaseModel):
    """Child JSON-RPC process configuration."""
    command: str = "npx"
    package: str = "@supabase/mcp-server-supabase"
    read_only: bool = True
    extra_args: list[str] = Field(default_factory=list)
    command_override: str = ""  # Full command line, shlex-split; replaces command/package/args
    env: dict[str, str] = Field(default_factory=dict)  # Injected into the child environment
    ready_grace_seconds: float = 2.0  # Time without a crash before the child counts as ready
    restart_wait_seconds: float = 3.0  # How long a request waits for a restarted child
    response_timeout_seconds: float = 15.0
    match_response_ids: bool = True  # Discard reply lines whose id differs from the request id
    stream_limit_bytes: int = 16 * 1024 * 1024  # Longest stdout line accepted


class SseConfig(BaseModel):
    """Server-sent events stream configuration."""
    keepalive_interval_seconds: float = 30.0


class BridgeSettings(BaseSettings):
    """Root configuration for mcpbridge."""
    project_ref: str = ""
    supabase_access_token: str = ""
    host: str = "0.0.0.0"
    port: int = 3000
    server_name: str = "custom-mcp-http"
    log_level: str = "INFO"
    log_file: str = ""
    max_body_bytes: int = 10 * 1024 * 1024
    child: ChildConfig = Field(default_factory=ChildConfig)
    sse: SseConfig = Field(default_factory=SseConfig)

    @property
    def token_present(self) -> bool:
        return bool(self.supabase_access_token)

    def summary(self) -> dict[str, object]:
        """Loggable view of the settings; never includes the token."""
        return {
            "host": self.host,
            "port": self.port,
            "project_ref": self.project_ref,
            "token_present": self.token_present,
            "server": self.server_name,
        }

    model_config = SettingsConfigDict(
        env_prefix="",
        env_nested_delimiter="__",
        extra="ignore",
    )
