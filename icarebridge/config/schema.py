"""Configuration schema using Pydantic.

Single data model and defaults for the bridge, persisted to ~/.icarebridge/config.json.
"""

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RuntimeConfig(BaseModel):
    """Embedded guest interpreter configuration."""
    python: str = ""  # Interpreter for the guest; empty = the host's own interpreter
    workspace: str = ""  # Guest filesystem directory; empty = fresh temporary directory
    guest_module: str = "icare"  # Namespace the statistical package is imported under
    package: str = "pyicare"
    package_version: str = "1.0.0"
    install_package: bool = False  # pip install package==version into the guest on load
    start_timeout: float = 30.0
    install_timeout: float = 600.0
    max_message_bytes: int = 64 * 1024 * 1024  # Largest single reply line from the guest

    @property
    def requirement(self) -> str:
        return f"{self.package}=={self.package_version}" if self.package_version else self.package


class FetchConfig(BaseModel):
    """Host transport used to stage remote files."""
    timeout: float = 30.0
    user_agent: str = "icarebridge/1.0"
    follow_redirects: bool = True
    max_redirects: int = 5


class BridgeConfig(BaseModel):
    """Invocation behaviour."""
    # One invocation at a time per ICare instance; the guest filesystem is shared
    serialize_invocations: bool = True


class LoggingConfig(BaseModel):
    """CLI logging."""
    level: str = "INFO"
    file: bool = False  # Also write a rotating log under ~/.icarebridge/logs


class Config(BaseSettings):
    """Root configuration for icarebridge."""
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    bridge: BridgeConfig = Field(default_factory=BridgeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def workspace_path(self) -> Path | None:
        """Expanded guest workspace path, or None for a temporary one."""
        if not self.runtime.workspace.strip():
            return None
        return Path(self.runtime.workspace).expanduser()

    model_config = SettingsConfigDict(
        env_prefix="ICAREBRIDGE_",
        env_nested_delimiter="__",
    )
