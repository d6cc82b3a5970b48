"""
Unified exception definitions
"""


class TunnelError(Exception):
    """Base exception class"""
    pass


class PreconditionError(TunnelError):
    """Missing configuration or tooling"""
    pass


class KeyRetrievalError(TunnelError):
    """Key material could not be obtained"""
    pass


class RenderError(TunnelError):
    """Rendered artifact is malformed (programming defect)"""
    pass


class RemoteExecError(TunnelError):
    """Remote command channel failure"""

    def __init__(self, message: str, step: str = ""):
        self.step = step
        super().__init__(f"{step}: {message}" if step else message)


class TransferError(TunnelError):
    """File transfer to the remote host failed"""

    def __init__(self, message: str, step: str = ""):
        self.step = step
        super().__init__(f"{step}: {message}" if step else message)


class TunnelCommandError(TunnelError):
    """Local tunnel CLI invocation failed"""
    pass


class VerificationFailure(TunnelError):
    """Connectivity probe failed (never fatal)"""
    pass


class RunCancelled(BaseException):
    """
    External cancellation (SIGINT/SIGTERM).

    Derives from BaseException, like KeyboardInterrupt, so that
    ``except Exception`` blocks do not absorb it.
    """
    pass
