"""
revtunnel - WireGuard reverse tunnel provisioning tool

Exposes a public IP held by a server on a host behind NAT, supporting:
- Idempotent WireGuard key management on both ends
- Deterministic local / remote configuration rendering
- Server control script deployment with fingerprint-based drift detection
- Bidirectional connectivity verification
- Local link supervision until cancelled
"""

__version__ = "0.1.0"

# Export core components
from .core import (
    RemoteClient,
    ClientConfig,
    LocalRunner,
    load_ssh_config,
)

# Export domain models
from .domain.tunnel import (
    ProvisioningParameters,
    Role,
    ScriptArtifact,
    RemoteDeploymentState,
    TunnelSettings,
    TunnelService,
    render,
    needs_update,
)

__all__ = [
    # Version
    "__version__",
    # Client
    "RemoteClient",
    "ClientConfig",
    "LocalRunner",
    # Utilities
    "load_ssh_config",
    # Models
    "ProvisioningParameters",
    "Role",
    "ScriptArtifact",
    "RemoteDeploymentState",
    "TunnelSettings",
    # Operations
    "TunnelService",
    "render",
    "needs_update",
]
