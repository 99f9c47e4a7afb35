from collections import defaultdict
from typing import DefaultDict, Set

from shiftreduce.common import Registrable
from shiftreduce.common.checks import AgendaMismatchError
from shiftreduce.state_machines.agenda import Agenda
from shiftreduce.state_machines.states import DerivationState


class MarginObjective(Registrable):
    """
    A ``MarginObjective`` compares the agenda of a free search (the candidates) with the agenda of
    an oracle-constrained search over the same sentence and attributes loss to individual states.

    The result of an evaluation is the returned objective value plus two scratch structures that
    the objective owns and clears at the start of every call:

    - ``backward`` maps a ``DerivationState`` to its accumulated loss.  This is the hand-off to
      whatever propagates the loss into parameter deltas.
    - ``states`` maps a step to the set of states that were involved in the attribution.

    Concrete implementations only define ``margin``.
    """
    default_implementation = 'margin_max'

    def __init__(self) -> None:
        self.backward: DefaultDict[DerivationState, float] = defaultdict(float)
        self.states: DefaultDict[int, Set[DerivationState]] = defaultdict(set)

    def clear(self) -> None:
        self.backward.clear()
        self.states.clear()

    def __call__(self, candidates: Agenda, oracles: Agenda) -> float:
        """
        Parameters
        ----------
        candidates : ``Agenda``
            The agenda of the free search.
        oracles : ``Agenda``
            The agenda of the oracle search.  It must have as many steps as ``candidates``.

        Returns
        -------
        objective : ``float``
            The loss of this instance; ``backward`` and ``states`` hold its attribution.
        """
        self.clear()
        if len(candidates) != len(oracles):
            raise AgendaMismatchError(f"candidate agenda has {len(candidates)} steps, "
                                      f"oracle agenda has {len(oracles)}")
        return self.margin(candidates, oracles)

    def margin(self, candidates: Agenda, oracles: Agenda) -> float:
        raise NotImplementedError

    def activate(self, state: DerivationState) -> None:
        self.states[state.step].add(state)
