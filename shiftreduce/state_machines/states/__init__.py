"""
This module contains the ``DerivationState`` of the shift-reduce transition system and the
``StateArena`` that allocates the states of one parse.
"""
from shiftreduce.state_machines.states.derivation_state import (
    DerivationState,
    Operation,
    OperationType,
    Span,
)
from shiftreduce.state_machines.states.state_arena import StateArena
