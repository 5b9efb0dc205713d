# event_approval/services/role_sequencer.py

from typing import Iterable, List, Optional

from event_approval.core.roles import Role, PREFIX_ROLES, WORKFLOW_ROLE_ORDER
from event_approval.services.workflow_errors import InvalidWorkflowSelection


def canonicalize(chosen_roles: Optional[Iterable[str]]) -> List[Role]:
    """
    Orders an IQAC role selection by the fixed priority
    PRINCIPAL, DIRECTOR, AO, CEO, whatever order it was picked in.

    Raises:
        InvalidWorkflowSelection: empty selection, or a role outside that set.
    """
    if chosen_roles is None:
        raise InvalidWorkflowSelection("At least one approver role must be selected.")

    selected = set()
    for raw in chosen_roles:
        try:
            role = Role(str(raw).strip().upper())
        except ValueError:
            raise InvalidWorkflowSelection(f"'{raw}' is not a valid workflow role.")
        if role not in WORKFLOW_ROLE_ORDER:
            raise InvalidWorkflowSelection(
                f"'{role.value}' cannot be assigned. Choose from: {', '.join(r.value for r in WORKFLOW_ROLE_ORDER)}"
            )
        selected.add(role)

    if not selected:
        raise InvalidWorkflowSelection("At least one approver role must be selected.")

    return [role for role in WORKFLOW_ROLE_ORDER if role in selected]


def effective_chain(workflow_roles: Iterable[str]) -> List[Role]:
    """HOD, IQAC, then whatever IQAC assigned (nothing until it has)."""
    return list(PREFIX_ROLES) + [Role(r) for r in workflow_roles]


def next_role(chain: List[Role], role: str) -> Optional[Role]:
    """
    The role after `role` in `chain`, or None when `role` is the last one.

    Raises:
        ValueError: `role` is not part of the chain.
    """
    current = Role(role)
    idx = chain.index(current)
    if idx == len(chain) - 1:
        return None
    return chain[idx + 1]
