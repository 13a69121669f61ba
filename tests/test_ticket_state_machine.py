import pytest

from helpdesk.errors import StateConflictError, ValidationError
from helpdesk.tickets.state import TicketStateMachine, TicketStatus


def test_initial_state_depends_on_attachment_gating():
    assert TicketStateMachine.initial_state() == TicketStatus.PENDING
    assert TicketStateMachine.initial_state(requires_attachments=True) == TicketStatus.PENDING_ATTACHMENTS


def test_state_machine_allows_moves_between_open_states():
    assert TicketStateMachine.can_transition(TicketStatus.PENDING, TicketStatus.AUTHORIZED)
    assert TicketStateMachine.can_transition(TicketStatus.AUTHORIZED, TicketStatus.REJECTED)
    assert TicketStateMachine.can_transition(TicketStatus.REJECTED, TicketStatus.OPEN)
    assert TicketStateMachine.can_transition(TicketStatus.OPEN, TicketStatus.CLOSED)
    assert TicketStateMachine.can_transition(TicketStatus.PENDING_ATTACHMENTS, TicketStatus.PENDING)


def test_state_machine_blocks_noop_terminal_and_creation_only_targets():
    assert not TicketStateMachine.can_transition(TicketStatus.PENDING, TicketStatus.PENDING)
    assert not TicketStateMachine.can_transition(TicketStatus.CLOSED, TicketStatus.OPEN)
    assert not TicketStateMachine.can_transition(TicketStatus.OPEN, TicketStatus.PENDING_ATTACHMENTS)

    with pytest.raises(StateConflictError):
        TicketStateMachine.assert_transition(TicketStatus.AUTHORIZED, TicketStatus.AUTHORIZED)
    with pytest.raises(StateConflictError):
        TicketStateMachine.assert_transition(TicketStatus.CLOSED, TicketStatus.PENDING)
    with pytest.raises(StateConflictError):
        TicketStateMachine.assert_transition(TicketStatus.PENDING, TicketStatus.PENDING_ATTACHMENTS)


@pytest.mark.parametrize("raw", ["authorized", "  AUTHORIZED ", "Authorized"])
def test_parse_normalizes_case_and_whitespace(raw):
    assert TicketStateMachine.parse(raw) == TicketStatus.AUTHORIZED


@pytest.mark.parametrize("raw", ["", "   ", "autorizado", None])
def test_parse_rejects_unknown_values(raw):
    with pytest.raises(ValidationError):
        TicketStateMachine.parse(raw)


def test_replay_reconstructs_current_state():
    final = TicketStateMachine.replay(
        [
            (None, TicketStatus.PENDING_ATTACHMENTS),
            (TicketStatus.PENDING_ATTACHMENTS, TicketStatus.PENDING),
            (TicketStatus.PENDING, TicketStatus.AUTHORIZED),
            (TicketStatus.AUTHORIZED, TicketStatus.CLOSED),
        ]
    )
    assert final == TicketStatus.CLOSED


@pytest.mark.parametrize(
    "entries",
    [
        [],
        [(TicketStatus.OPEN, TicketStatus.PENDING)],
        [(None, TicketStatus.AUTHORIZED)],
        [(None, TicketStatus.PENDING), (TicketStatus.PENDING, TicketStatus.PENDING)],
        [(None, TicketStatus.PENDING), (TicketStatus.OPEN, TicketStatus.CLOSED)],
        [
            (None, TicketStatus.PENDING),
            (TicketStatus.PENDING, TicketStatus.CLOSED),
            (TicketStatus.CLOSED, TicketStatus.OPEN),
        ],
    ],
)
def test_replay_rejects_illegal_histories(entries):
    with pytest.raises(StateConflictError):
        TicketStateMachine.replay(entries)
