import logging
from typing import List

from shiftreduce.common import FromParams
from shiftreduce.parameters import ParameterStore
from shiftreduce.state_machines.agenda import Agenda, SearchContext
from shiftreduce.state_machines.states import DerivationState
from shiftreduce.state_machines.transition_engine import TransitionEngine

logger = logging.getLogger(__name__)


class BeamSearch(FromParams):
    """
    This class implements the free ("candidate") search: a step-synchronous beam search over the
    shift-reduce transition system.  Starting from the axiom, every state on the beam at a step is
    expanded by every legal action, with labels taken from the store's vocabulary, and the
    successors at the next step are pruned to the ``beam_size`` highest scores.  Finished states
    are carried forward with IDLE, so every surviving derivation ends at the last agenda step and
    the agenda can be compared step by step with an oracle agenda of the same length.

    Parameters
    ----------
    beam_size : ``int``
        The beam size to use.
    closure_limit : ``int``, optional (default = 3)
        Maximum number of consecutive UNARY actions.
    unary_limit : ``int``, optional (default = None)
        Maximum number of UNARY actions in one derivation.  If not given, this is
        ``closure_limit * (2 * length - 1)`` for a sentence of ``length`` words, enough for every
        constituent to carry a full unary chain.
    """
    def __init__(self,
                 beam_size: int,
                 closure_limit: int = 3,
                 unary_limit: int = None) -> None:
        if beam_size < 1:
            raise ValueError(f"beam_size must be positive, got {beam_size}")
        self._beam_size = beam_size
        self._closure_limit = closure_limit
        self._unary_limit = unary_limit

    def unary_limit(self, length: int) -> int:
        if self._unary_limit is not None:
            return self._unary_limit
        return TransitionEngine.default_unary_limit(length, self._closure_limit)

    def max_steps(self, length: int) -> int:
        return TransitionEngine.max_steps(length, self.unary_limit(length))

    def parse(self,
              engine: TransitionEngine,
              theta: ParameterStore,
              sentence: List[str]) -> Agenda:
        """
        Runs a search over ``sentence`` in a fresh ``SearchContext`` of ``max_steps`` steps.
        """
        context = SearchContext(sentence, self.max_steps(len(sentence)))
        engine.axiom(context, theta)
        return self.search(engine, theta, context)

    def search(self,
               engine: TransitionEngine,
               theta: ParameterStore,
               context: SearchContext) -> Agenda:
        """
        Parameters
        ----------
        engine : ``TransitionEngine``
            Scores and builds the successor states.
        theta : ``ParameterStore``
            The parameters to score with.
        context : ``SearchContext``
            A context whose axiom has already been pushed by ``engine.axiom``.

        Returns
        -------
        agenda : ``Agenda``
            The context's agenda, with at most ``beam_size`` states at every step after the axiom.
        """
        agenda = context.agenda
        unary_limit = self.unary_limit(len(context.sentence))
        for step in range(len(agenda) - 1):
            for state in agenda[step]:
                self._expand(engine, theta, context, state, unary_limit)
            agenda.prune(step + 1, self._beam_size)
            logger.debug("step %d: %d states, best %s", step + 1, len(agenda[step + 1]),
                         agenda.best(step + 1))
        return agenda

    def _expand(self,
                engine: TransitionEngine,
                theta: ParameterStore,
                context: SearchContext,
                state: DerivationState,
                unary_limit: int) -> None:
        if engine.can_idle(state):
            engine.idle(context, theta, state)
            return
        vocab = theta.vocab
        if engine.can_shift(context, state):
            word = context.sentence[state.next]
            for label in vocab.shift_labels_for(word):
                engine.shift(context, theta, state, word, label)
        if engine.can_reduce(state):
            for label in vocab.reduce_labels:
                engine.reduce(context, theta, state, label)
        if engine.can_unary(state, unary_limit, self._closure_limit):
            for label in vocab.unary_labels:
                engine.unary(context, theta, state, label)
        if engine.can_final(context, state):
            engine.final(context, theta, state)
