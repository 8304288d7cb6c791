"""
Receivables Workflows.

State machine for the invoice lifecycle.  Balance-driven transitions
(``apply_payment``) are performed only by the payment application engine;
the remaining transitions are the manual status changes a caller may
request through ``ReceivablesService.update_invoice``.
"""

from dataclasses import dataclass

from billing_kernel.logging_config import get_logger

logger = get_logger("modules.receivables.workflows")


@dataclass(frozen=True)
class Guard:
    """A condition for a transition."""
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    manual: bool = True


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]

    def find(self, from_state: str, to_state: str) -> Transition | None:
        """Return the transition between two states, if declared."""
        for transition in self.transitions:
            if transition.from_state == from_state and transition.to_state == to_state:
                return transition
        return None

    def allows_manual(self, from_state: str, to_state: str) -> bool:
        """True if a caller may request this change directly."""
        transition = self.find(from_state, to_state)
        return transition is not None and transition.manual


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

BALANCE_ZERO = Guard(
    name="balance_zero",
    description="Invoice outstanding amount is zero",
)

NO_PAYMENTS = Guard(
    name="no_payments",
    description="No payment has been applied to the invoice",
)

PAST_DUE = Guard(
    name="past_due",
    description="Due date has passed with a balance outstanding",
)


# -----------------------------------------------------------------------------
# Invoice Workflow
# -----------------------------------------------------------------------------

INVOICE_WORKFLOW = Workflow(
    name="invoice",
    description="Customer invoice lifecycle",
    initial_state="pending",
    states=(
        "draft",
        "pending",
        "partially_paid",
        "paid",
        "cancelled",
        "overdue",
    ),
    transitions=(
        Transition("draft", "pending", action="issue"),
        Transition("draft", "cancelled", action="cancel"),
        Transition("pending", "cancelled", action="cancel", guard=NO_PAYMENTS),
        Transition("pending", "overdue", action="mark_overdue", guard=PAST_DUE),
        Transition("partially_paid", "overdue", action="mark_overdue", guard=PAST_DUE),
        Transition("overdue", "cancelled", action="cancel", guard=NO_PAYMENTS),
        Transition("pending", "partially_paid", action="apply_payment", manual=False),
        Transition("pending", "paid", action="apply_payment", guard=BALANCE_ZERO, manual=False),
        Transition("partially_paid", "paid", action="apply_payment", guard=BALANCE_ZERO, manual=False),
        Transition("overdue", "partially_paid", action="apply_payment", manual=False),
        Transition("overdue", "paid", action="apply_payment", guard=BALANCE_ZERO, manual=False),
        Transition("draft", "partially_paid", action="apply_payment", manual=False),
        Transition("draft", "paid", action="apply_payment", guard=BALANCE_ZERO, manual=False),
    ),
)

logger.info(
    "invoice_workflow_registered",
    extra={
        "workflow_name": INVOICE_WORKFLOW.name,
        "state_count": len(INVOICE_WORKFLOW.states),
        "transition_count": len(INVOICE_WORKFLOW.transitions),
        "initial_state": INVOICE_WORKFLOW.initial_state,
    },
)
