"""Configuration schema using Pydantic."""

from pathlib import Path
from typing import Literal
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from lainclaw.pairing.types import DEFAULT_PENDING_MAX, DEFAULT_PENDING_TTL_MS, PendingLimits
from lainclaw.utils.helpers import get_data_path


class PairingConfig(BaseModel):
    """Access policy for one channel."""
    policy: Literal["open", "allowlist", "pairing", "disabled"] = "open"
    allow_from: list[str] = Field(default_factory=list)  # Static allow-list, "*" allows everyone
    pending_ttl_ms: int = DEFAULT_PENDING_TTL_MS  # 1 hour
    pending_max: int = DEFAULT_PENDING_MAX

    def limits(self) -> PendingLimits:
        return PendingLimits.resolve(self.pending_ttl_ms, self.pending_max)


class FeishuConfig(BaseModel):
    """Feishu channel configuration."""
    enabled: bool = False
    app_id: str = ""
    app_secret: str = ""
    request_timeout_ms: int = 10000
    pairing: PairingConfig = Field(default_factory=PairingConfig)


class LocalConfig(BaseModel):
    """Local file-queue channel configuration."""
    enabled: bool = False
    queue_dir: str = "~/.lainclaw/local-queue"
    pairing: PairingConfig = Field(default_factory=PairingConfig)


class ChannelsConfig(BaseModel):
    """Configuration for chat channels."""
    feishu: FeishuConfig = Field(default_factory=FeishuConfig)
    local: LocalConfig = Field(default_factory=LocalConfig)

    def get_pairing(self, channel: str) -> PairingConfig:
        """Pairing settings of a channel; unknown channels get the defaults."""
        channel_config = getattr(self, channel.strip().lower(), None)
        if isinstance(channel_config, (FeishuConfig, LocalConfig)):
            return channel_config.pairing
        return PairingConfig()

    def pairing_by_channel(self) -> dict[str, PairingConfig]:
        return {"feishu": self.feishu.pairing, "local": self.local.pairing}


class GatewayConfig(BaseModel):
    """Gateway/server configuration."""
    host: str = "127.0.0.1"
    port: int = 18790
    state_file: str = ""  # Defaults to <data dir>/gateway.json


class Config(BaseSettings):
    """Root configuration for lainclaw."""
    channels: ChannelsConfig = Field(default_factory=ChannelsConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)

    @property
    def state_path(self) -> Path:
        """Get expanded pairing state file path."""
        if self.gateway.state_file:
            return Path(self.gateway.state_file).expanduser()
        return get_data_path() / "gateway.json"

    class Config:
        env_prefix = "LAINCLAW_"
        env_nested_delimiter = "__"
