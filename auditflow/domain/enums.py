"""Domain enumerations for workflow graphs and their runtime.

Enums represent fixed sets of domain values (node kinds, instance and
assignment status, timeline actions, assignment strategies).
"""

from enum import Enum

from auditflow.shared.enums import _ValuesMixin


class NodeType(_ValuesMixin, str, Enum):
    """Kind of node in a workflow definition graph."""

    START = "start"
    PROCESS = "process"
    DECISION = "decision"
    APPROVAL = "approval"
    END = "end"

    @property
    def is_actionable(self) -> bool:
        """Whether entering this node creates step assignments for humans."""
        return self in (NodeType.PROCESS, NodeType.APPROVAL)


class ApprovalType(_ValuesMixin, str, Enum):
    """Quorum rule for approval nodes."""

    ANY = "ANY"
    ALL = "ALL"


class InstanceStatus(_ValuesMixin, str, Enum):
    """Workflow instance lifecycle. completed and cancelled are terminal."""

    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transition is allowed."""
        return self is not InstanceStatus.ACTIVE


class AssignmentStatus(_ValuesMixin, str, Enum):
    """Step assignment status.

    escalated and superseded close an assignment that was replaced
    (escalation, reassignment, ANY quorum reached by a sibling).
    """

    PENDING = "pending"
    COMPLETED = "completed"
    REJECTED = "rejected"
    ESCALATED = "escalated"
    SUPERSEDED = "superseded"


class AssignmentType(_ValuesMixin, str, Enum):
    """Whether a step targets a role or a named user."""

    ROLE = "role"
    USER = "user"


class AssignmentAction(_ValuesMixin, str, Enum):
    """Action an assignee takes on a pending step."""

    APPROVE = "approve"
    REJECT = "reject"


class TimelineAction(_ValuesMixin, str, Enum):
    """Action recorded in the append-only workflow timeline."""

    ENTER_NODE = "enter_node"
    APPROVE = "approve"
    REJECT = "reject"
    ESCALATE = "escalate"
    REASSIGN = "reassign"
    COMPLETE = "complete"
    CANCEL = "cancel"
    VETO = "veto"


class AssignmentStrategy(_ValuesMixin, str, Enum):
    """Strategy used to pick one user among the available holders of a role."""

    ROUND_ROBIN = "round_robin"
    WORKLOAD = "workload"
    RANDOM = "random"


class DeadlineStatus(_ValuesMixin, str, Enum):
    """Deadline classification for pending assignments."""

    ON_TIME = "on_time"
    APPROACHING = "approaching"
    OVERDUE = "overdue"
