import pytest

from event_approval.core.roles import Role
from event_approval.services.role_sequencer import canonicalize, effective_chain, next_role
from event_approval.services.workflow_errors import InvalidWorkflowSelection


def test_canonicalize_orders_by_priority():
    assert canonicalize(["AO", "CEO", "PRINCIPAL"]) == [Role.PRINCIPAL, Role.AO, Role.CEO]


def test_canonicalize_is_case_insensitive_and_dedupes():
    assert canonicalize(["ceo", "Director", "CEO"]) == [Role.DIRECTOR, Role.CEO]


def test_canonicalize_single_role():
    assert canonicalize(["DIRECTOR"]) == [Role.DIRECTOR]


@pytest.mark.parametrize("selection", [None, [], ["HOD"], ["IQAC", "AO"], ["STAFF"], ["BURSAR"]])
def test_canonicalize_rejects_invalid_selection(selection):
    with pytest.raises(InvalidWorkflowSelection):
        canonicalize(selection)


def test_effective_chain_before_and_after_assignment():
    assert effective_chain([]) == [Role.HOD, Role.IQAC]
    assert effective_chain(["PRINCIPAL", "AO"]) == [Role.HOD, Role.IQAC, Role.PRINCIPAL, Role.AO]


def test_next_role_walks_the_chain():
    chain = effective_chain(["PRINCIPAL", "AO"])
    assert next_role(chain, "HOD") == Role.IQAC
    assert next_role(chain, "IQAC") == Role.PRINCIPAL
    assert next_role(chain, "PRINCIPAL") == Role.AO
    assert next_role(chain, "AO") is None


def test_next_role_unknown_to_chain():
    with pytest.raises(ValueError):
        next_role(effective_chain(["AO"]), "CEO")
