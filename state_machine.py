"""Dispute lifecycle transitions for disputable deposits."""

from typing import Dict, Optional

from models import DisputeState, TransactionType

ALLOWED_TRANSITIONS: Dict[DisputeState, Dict[TransactionType, DisputeState]] = {
    DisputeState.undisputed: {TransactionType.dispute: DisputeState.disputed},
    DisputeState.disputed: {
        TransactionType.resolve: DisputeState.undisputed,
        TransactionType.chargeback: DisputeState.chargedback,
    },
    DisputeState.chargedback: {},
}


def next_state(current: DisputeState, action: TransactionType) -> Optional[DisputeState]:
    """Return the state reached by applying ``action``, or None when not allowed."""

    return ALLOWED_TRANSITIONS.get(current, {}).get(action)


def is_terminal(state: DisputeState) -> bool:
    return not ALLOWED_TRANSITIONS.get(state)
