"""
Tunnel domain module
"""
from .models import (
    KeyPair,
    ProvisioningParameters,
    RenderedConfig,
    RemoteDeploymentState,
    Role,
    ScriptArtifact,
    TunnelState,
)
from .settings import TunnelSettings
from .render import render
from .keys import KeyMaterialManager
from .local import LocalTunnelController, TunnelLease
from .script import RemoteScriptSynthesizer
from .drift import DriftReconciler, needs_update
from .deploy import RemoteDeployer
from .verify import ConnectivityVerifier, VerificationResult
from .supervise import LinkState, SupervisionLoop
from .service import RunReport, StatusReport, TunnelService

__all__ = [
    "KeyPair",
    "ProvisioningParameters",
    "RenderedConfig",
    "RemoteDeploymentState",
    "Role",
    "ScriptArtifact",
    "TunnelState",
    "TunnelSettings",
    "render",
    "KeyMaterialManager",
    "LocalTunnelController",
    "TunnelLease",
    "RemoteScriptSynthesizer",
    "DriftReconciler",
    "needs_update",
    "RemoteDeployer",
    "ConnectivityVerifier",
    "VerificationResult",
    "LinkState",
    "SupervisionLoop",
    "RunReport",
    "StatusReport",
    "TunnelService",
]
