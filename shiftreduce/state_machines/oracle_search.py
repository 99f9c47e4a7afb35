import logging
from typing import List

from nltk import Tree

from shiftreduce.common import FromParams
from shiftreduce.data.trees import check_binarized, is_preterminal
from shiftreduce.parameters import ParameterStore
from shiftreduce.state_machines.agenda import Agenda, SearchContext
from shiftreduce.state_machines.states import OperationType
from shiftreduce.state_machines.transition_engine import Action, TransitionEngine

logger = logging.getLogger(__name__)


class Oracle(FromParams):
    """
    Turns a binarized gold tree into the action sequence that derives it: a post-order walk
    emitting SHIFT for every preterminal, REDUCE for every binary node and UNARY for every node
    with a single constituent child, followed by FINAL.
    """
    def actions(self, tree: Tree) -> List[Action]:
        check_binarized(tree)
        actions: List[Action] = []
        self._visit(tree, actions)
        actions.append(Action(OperationType.FINAL))
        return actions

    def _visit(self, tree: Tree, actions: List[Action]) -> None:
        if is_preterminal(tree):
            actions.append(Action(OperationType.SHIFT, tree.label(), tree[0]))
            return
        for child in tree:
            self._visit(child, actions)
        if len(tree) == 2:
            actions.append(Action(OperationType.REDUCE, tree.label()))
        else:
            actions.append(Action(OperationType.UNARY, tree.label()))


class OracleSearch:
    """
    The oracle-constrained search: follows a fixed action sequence from the axiom with the same
    ``TransitionEngine`` that scores the free search, then carries the finished state forward
    with IDLE until the last step of the agenda.  Each step of the resulting agenda holds exactly
    one state.
    """
    def search(self,
               engine: TransitionEngine,
               theta: ParameterStore,
               context: SearchContext,
               actions: List[Action]) -> Agenda:
        agenda = context.agenda
        if len(actions) >= len(agenda):
            raise ValueError(f"{len(actions)} oracle actions do not fit "
                             f"an agenda of {len(agenda)} steps")
        state = agenda[0][0]
        for action in actions:
            state = engine.apply(context, theta, state, action)
        while state.step + 1 < len(agenda):
            state = engine.idle(context, theta, state)
        logger.debug("oracle derivation of %d actions scored %f", len(actions), state.score)
        return agenda
