"""
freight_services -- Package init and public API.

Responsibility:
    Stateful orchestration that composes the pure engines
    (freight_engines/) with configuration, the clock and the edit-lock
    store.  The only layer that may read the wall clock.

Architecture position:
    Services -- orchestration over engines + kernel + config.

        freight_services/ -> freight_engines/  (allowed)
        freight_services/ -> freight_kernel/   (allowed)
        freight_services/ -> freight_config/   (allowed)
        freight_engines/  -> freight_services/ (FORBIDDEN)
        freight_kernel/   -> freight_services/ (FORBIDDEN)
"""

from freight_kernel.logging_config import get_logger

logger = get_logger("services")

from freight_services.workflow_policy import WorkflowPolicy

__all__ = [
    "WorkflowPolicy",
]
