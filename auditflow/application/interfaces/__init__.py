"""Application interfaces (ports): repository and service protocols.

Define contracts for infrastructure implementations (DIP).
No runtime imports from auditflow.infrastructure.
"""

from auditflow.application.interfaces.repositories import (
    IAssignmentCursorRepository,
    IDelegationRepository,
    IStepAssignmentRepository,
    ITimelineRepository,
    IUserDirectoryRepository,
    IWorkflowDefinitionRepository,
    IWorkflowInstanceRepository,
)
from auditflow.application.interfaces.services import (
    IAssignmentNotifier,
    IAssignmentResolver,
    IDirectoryClient,
    IEscalationHandler,
    IJobQueue,
    IRealtimeChannel,
    ISyncStrategy,
    IUserUpserter,
)

__all__ = [
    "IAssignmentCursorRepository",
    "IAssignmentNotifier",
    "IAssignmentResolver",
    "IDelegationRepository",
    "IDirectoryClient",
    "IEscalationHandler",
    "IJobQueue",
    "IRealtimeChannel",
    "IStepAssignmentRepository",
    "ISyncStrategy",
    "ITimelineRepository",
    "IUserDirectoryRepository",
    "IUserUpserter",
    "IWorkflowDefinitionRepository",
    "IWorkflowInstanceRepository",
]
