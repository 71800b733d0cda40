from device_link._config import Config
from device_link._context import Context
from device_link._manager import DeviceFlowManager
from device_link._memory import MemoryFlowStore
from device_link._reaper import ExpiryReaper, SweepResult
from device_link._storage import CredentialVault, FlowStore, PostLinkNotifier
from device_link.models.flow import (
    AuthorizationFlow,
    DeviceFlowInit,
    DeviceFlowStatus,
    FlowStatus,
)
from device_link.providers.device import DeviceFlowProvider
from device_link.providers.github_copilot import GitHubCopilotProvider

__all__ = [
    "AuthorizationFlow",
    "Config",
    "Context",
    "CredentialVault",
    "DeviceFlowInit",
    "DeviceFlowManager",
    "DeviceFlowProvider",
    "DeviceFlowStatus",
    "ExpiryReaper",
    "FlowStatus",
    "FlowStore",
    "GitHubCopilotProvider",
    "MemoryFlowStore",
    "PostLinkNotifier",
    "SweepResult",
]
