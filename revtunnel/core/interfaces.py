"""
Core interfaces for dependency injection
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Any, Optional, Sequence
from pathlib import Path


@dataclass(frozen=True)
class CommandResult:
    """Captured result of a local or remote command"""
    stdout: str
    stderr: str = ""
    exit_code: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class RemoteChannel(ABC):
    """
    Command-and-response link to the remote host.

    Non-zero exit codes are returned in the result. Connection level
    failures raise RemoteExecError (execute) or TransferError (copy).
    """

    host: str
    user: str
    
    @abstractmethod
    def execute(self, command: str, timeout: Optional[float] = None) -> CommandResult:
        """Run a (possibly multi-line) shell command body"""
        pass
    
    @abstractmethod
    def copy(self, local_path: Path, remote_path: str, timeout: Optional[float] = None) -> None:
        """Copy a local file to the remote host"""
        pass
    
    @abstractmethod
    def close(self) -> None:
        """Release the underlying connection"""
        pass


class CommandRunner(ABC):
    """Local process execution interface"""
    
    @abstractmethod
    def run(
        self,
        argv: Sequence[str],
        input: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """Run argv locally and capture output"""
        pass


class TunnelCli(ABC):
    """Tunnel technology CLI surface"""

    @abstractmethod
    def genkey(self) -> str:
        pass

    @abstractmethod
    def pubkey(self, private_key: str) -> str:
        pass
    
    @abstractmethod
    def apply_interface(self, config_path: Path) -> None:
        pass
    
    @abstractmethod
    def teardown_interface(self, name: str) -> None:
        pass
    
    @abstractmethod
    def show_status(self, name: str) -> Optional[str]:
        """Status dump, or None when the interface does not exist"""
        pass

    @abstractmethod
    def latest_handshake(self, name: str) -> Optional[int]:
        """Epoch seconds of the most recent handshake, or None"""
        pass


class ServiceSupervisor(ABC):
    """Persistent service unit management on the remote host"""
    
    @abstractmethod
    def unit_exists(self, name: str) -> bool:
        pass
    
    @abstractmethod
    def install_unit(self, name: str, exec_start_path: str) -> None:
        """Create the unit definition; never overwrites an existing one"""
        pass
    
    @abstractmethod
    def enable(self, name: str) -> None:
        pass
    
    @abstractmethod
    def restart(self, name: str) -> None:
        pass
    
    @abstractmethod
    def start(self, name: str) -> None:
        pass
    
    @abstractmethod
    def is_active(self, name: str) -> bool:
        pass


class ConnectionFactory(ABC):
    """SSH connection factory interface"""
    
    @abstractmethod
    def create(self, params: Dict[str, Any]) -> RemoteChannel:
        """Create and connect a remote channel"""
        pass
