"""Configuration schema using Pydantic.

Persisted to ~/.cortexrpc/config.json; every field can be overridden from the
environment (``CORTEX_URL``, ``CORTEX_CREDENTIALS__USERNAME``, ...).
"""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CORTEX_URL = "wss://emotivcortex.com:54321"


class CredentialsConfig(BaseModel):
    """Login and application credentials used by ``init``."""
    username: str | None = None
    password: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    debit: int | None = None  # Sessions to debit on authorize; first run needs > 0

    def login_params(self) -> dict:
        return self.model_dump(include={"username", "password", "client_id", "client_secret"}, exclude_none=True)

    def authorize_params(self) -> dict:
        return self.model_dump(include={"client_id", "client_secret", "debit"}, exclude_none=True)


class CortexConfig(BaseSettings):
    """Root configuration for cortexrpc."""
    model_config = SettingsConfigDict(env_prefix="CORTEX_", env_nested_delimiter="__")

    url: str = DEFAULT_CORTEX_URL
    verify_tls: bool = True  # Local Cortex services use self-signed certificates
    protocol_version: str = "2.0"
    protocol_version_key: str = "protocolVersion"  # "jsonrpc" for plain JSON-RPC servers
    verbose: int = 1  # 0 silent, 1 warnings, 2 lifecycle, 3 frames
    log_file: bool = False
    credentials: CredentialsConfig = Field(default_factory=CredentialsConfig)
