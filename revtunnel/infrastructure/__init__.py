"""
Concrete collaborators: tunnel CLI and service supervisor
"""
from .systemd import SystemdSupervisor
from .wireguard import WireGuardCli

__all__ = ["SystemdSupervisor", "WireGuardCli"]
