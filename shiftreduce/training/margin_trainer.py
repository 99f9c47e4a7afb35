import logging
from typing import Dict, Iterable, NamedTuple, Optional, Set

from nltk import Tree

from shiftreduce.common import FromParams, Tqdm
from shiftreduce.objectives.margin_objective import MarginObjective
from shiftreduce.parameters import ParameterStore
from shiftreduce.state_machines.agenda import Agenda, SearchContext
from shiftreduce.state_machines.beam_search import BeamSearch
from shiftreduce.state_machines.oracle_search import Oracle, OracleSearch
from shiftreduce.state_machines.states import DerivationState
from shiftreduce.state_machines.transition_engine import TransitionEngine
from shiftreduce.state_machines.util import state_to_tree
from shiftreduce.training.metrics import Average, EvalbBracketingScorer

logger = logging.getLogger(__name__)


class MarginOutput(NamedTuple):
    loss: float
    backward: Dict[DerivationState, float]
    states: Dict[int, Set[DerivationState]]
    candidates: Agenda
    oracles: Agenda


class MarginTrainer(FromParams):
    """
    Runs one training instance from start to finish: the axiom, the free beam search, the oracle
    search along the gold tree's actions, and the objective over the two agendas.  The
    ``ParameterStore`` is only read; turning the loss attribution into parameter deltas and
    adding them up is left to the caller.

    A trainer keeps one ``SearchContext`` per search and reuses it for every sentence, so a
    trainer belongs to a single worker.

    # Parameters

    beam_search : `BeamSearch`
        The free search, which also fixes the agenda length.
    objective : `MarginObjective`, optional (default = `margin_max`)
    engine : `TransitionEngine`, optional
        Defaults to a `hardtanh` engine.
    oracle : `Oracle`, optional
    """

    def __init__(
        self,
        beam_search: BeamSearch,
        objective: MarginObjective = None,
        engine: TransitionEngine = None,
        oracle: Oracle = None,
    ) -> None:
        self._beam_search = beam_search
        self._objective = objective or MarginObjective.by_name("margin_max")()
        self._engine = engine or TransitionEngine()
        self._oracle = oracle or Oracle()
        self._oracle_search = OracleSearch()
        self._candidate_context: Optional[SearchContext] = None
        self._oracle_context: Optional[SearchContext] = None
        self._loss = Average()
        self._evalb = EvalbBracketingScorer()

    def _contexts(self, sentence, length: int):
        if self._candidate_context is None:
            self._candidate_context = SearchContext(sentence, length)
            self._oracle_context = SearchContext(sentence, length)
        else:
            self._candidate_context.clear(sentence, length)
            self._oracle_context.clear(sentence, length)
        return self._candidate_context, self._oracle_context

    def train_instance(self, theta: ParameterStore, tree: Tree) -> MarginOutput:
        """
        # Parameters

        theta : `ParameterStore`
            The parameters both searches are scored with.
        tree : `Tree`
            A binarized gold tree; its leaves are the sentence.

        # Returns

        A `MarginOutput` with the objective value, copies of the objective's `backward` and
        `states`, and both agendas.  The agendas stay valid until the next call.
        """
        sentence = tree.leaves()
        actions = self._oracle.actions(tree)
        length = max(self._beam_search.max_steps(len(sentence)), len(actions) + 1)
        candidate_context, oracle_context = self._contexts(sentence, length)

        self._engine.axiom(candidate_context, theta)
        candidates = self._beam_search.search(self._engine, theta, candidate_context)
        self._engine.axiom(oracle_context, theta)
        oracles = self._oracle_search.search(self._engine, theta, oracle_context, actions)

        loss = self._objective(candidates, oracles)
        self._loss(loss)
        self._update_evalb(candidates, tree)
        return MarginOutput(
            loss=loss,
            backward=dict(self._objective.backward),
            states={step: set(states) for step, states in self._objective.states.items()},
            candidates=candidates,
            oracles=oracles,
        )

    def _update_evalb(self, candidates: Agenda, tree: Tree) -> None:
        finished = [state for state in candidates[-1] if state.is_finished()]
        if not finished:
            logger.warning_once(
                "the beam kept no finished candidate; bracket scores skip such sentences"
            )
            return
        best = max(finished, key=lambda state: state.score)
        self._evalb([state_to_tree(best)], [tree])

    def get_metrics(self, reset: bool = False) -> Dict[str, float]:
        metrics = {"loss": self._loss.get_metric(reset)}
        metrics.update(self._evalb.get_metric(reset))
        return metrics

    def train(self, theta: ParameterStore, trees: Iterable[Tree]) -> Dict[str, float]:
        """
        Runs `train_instance` over `trees` and returns the mean loss together with the bracket
        scores of the best finished candidates.
        """
        logger.info("Training")
        self.get_metrics(reset=True)
        num_instances = 0
        trees_tqdm = Tqdm.tqdm(trees)
        for tree in trees_tqdm:
            self.train_instance(theta, tree)
            num_instances += 1
            metrics = self.get_metrics()
            description = ", ".join(f"{name}: {value:.4f}" for name, value in metrics.items())
            trees_tqdm.set_description(description, refresh=False)
        metrics = self.get_metrics(reset=True)
        logger.info(
            "Trained on %d instances: mean loss %.6f, bracket F1 %.4f",
            num_instances,
            metrics["loss"],
            metrics["evalb_f1_measure"],
        )
        return metrics
