"""
DualChat configuration.
"""

from .dualchat_config import (
    MAX_AUTO_RETRIES,
    RETRY_DELAY_BASE_SECONDS,
    BackendConfig,
    ModelConfig,
    DiscussionConfig,
    RetryConfig,
    PersonaConfig,
    DualChatConfig,
    get_config,
    reload_config,
)

__all__ = [
    "MAX_AUTO_RETRIES",
    "RETRY_DELAY_BASE_SECONDS",
    "BackendConfig",
    "ModelConfig",
    "DiscussionConfig",
    "RetryConfig",
    "PersonaConfig",
    "DualChatConfig",
    "get_config",
    "reload_config",
]
