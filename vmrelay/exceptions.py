"""Custom exceptions for vm-relay."""


class RelayError(RuntimeError):
    """Raised on unrecoverable precondition, connection or hypervisor errors."""


class PreconditionError(RelayError):
    """Raised before a session starts when its requirements are not met."""


class VMNotFoundError(PreconditionError):
    pass


class VMNotRunningError(PreconditionError):
    pass


class InterfaceError(PreconditionError):
    """Requested console interface is missing or has the wrong type."""


class QuorumCheckError(PreconditionError):
    pass


class RelayConnectionError(RelayError):
    """Rendezvous socket missing or refusing connections."""


class HypervisorError(RelayError):
    """A call into the hypervisor control API failed."""
