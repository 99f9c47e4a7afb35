"""
This module contains the shift-reduce transition system the parser is trained with.

The key abstractions in this code are the following:

    - ``DerivationState`` is one immutable parser configuration, linked to earlier states by its
      ``stack``, ``derivation`` and ``reduced`` back-references.
    - ``Agenda`` holds the beam of states at every step of one search, and ``SearchContext``
      bundles it with the ``StateArena`` and the input queue of that search.
    - ``TransitionEngine`` computes and scores the successor of a state for one action.
    - ``BeamSearch`` runs the free search and ``OracleSearch`` the search constrained to the
      actions ``Oracle`` derives from a gold tree.
"""
from shiftreduce.state_machines.agenda import Agenda, SearchContext
from shiftreduce.state_machines.beam_search import BeamSearch
from shiftreduce.state_machines.oracle_search import Oracle, OracleSearch
from shiftreduce.state_machines.states import (
    DerivationState,
    Operation,
    OperationType,
    Span,
    StateArena,
)
from shiftreduce.state_machines.transition_engine import Action, TransitionEngine
from shiftreduce.state_machines.util import state_to_tree
