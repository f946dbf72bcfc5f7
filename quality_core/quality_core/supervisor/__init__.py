"""Report server supervision."""

from quality_core.supervisor.server import ServerSupervisor

__all__ = ["ServerSupervisor"]
