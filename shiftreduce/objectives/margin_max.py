import logging
from typing import Optional, Tuple

from overrides import overrides

from shiftreduce.common.checks import DegenerateInstanceError
from shiftreduce.nn.semiring import LogSemiring, Semiring
from shiftreduce.objectives.margin_objective import MarginObjective
from shiftreduce.state_machines.agenda import Agenda
from shiftreduce.state_machines.states import DerivationState

logger = logging.getLogger(__name__)


@MarginObjective.register('margin_max')
class MarginMax(MarginObjective):
    """
    A hinge loss at the point of maximum violation.  We look at the last step where both agendas
    still have states, walk a candidate and an oracle derivation backwards in lockstep, and at
    every step where the candidate outscores the oracle compute the hinge error
    ``max(0, 1 - (oracle score - candidate score))``.  The step with the largest error (the
    latest one among equal errors) is where the pair diverges; its candidate state receives
    ``+weight`` and its oracle state ``-weight`` in ``backward``.

    Parameters
    ----------
    all_pairs : ``bool``, optional (default = False)
        If ``False``, only the best candidate and the best oracle state are compared, with weight
        1.  If ``True``, every oracle state is paired with every candidate that scores above the
        lowest oracle score, and each pair is weighted by the product of the two states'
        probabilities, normalized over the oracle beam and over those candidates respectively.
    semiring : ``Semiring``, optional (default = ``log``)
        The arithmetic used to normalize the probabilities.
    require_common_step : ``bool``, optional (default = False)
        When the agendas have no common non-empty step after the axiom the instance contributes
        nothing.  By default we return 0 without attributing anything; with this flag we raise a
        ``DegenerateInstanceError`` instead.
    """
    def __init__(self,
                 all_pairs: bool = False,
                 semiring: Semiring = None,
                 require_common_step: bool = False) -> None:
        super().__init__()
        self._all_pairs = all_pairs
        self._semiring = semiring or LogSemiring()
        self._require_common_step = require_common_step

    @overrides
    def margin(self, candidates: Agenda, oracles: Agenda) -> float:
        step_back = self.step_back(candidates, oracles)
        if step_back == 0:
            if self._require_common_step:
                raise DegenerateInstanceError(
                        "candidate and oracle agendas share no step after the axiom")
            logger.warning_once("candidate and oracle agendas share no step after the axiom; "
                                "such instances contribute no loss")
            return 0.0
        if self._all_pairs:
            return self._margin_all_pairs(candidates[step_back], oracles[step_back])
        return self._margin_best(candidates.best(step_back), oracles.best(step_back))

    @staticmethod
    def step_back(candidates: Agenda, oracles: Agenda) -> int:
        """
        The last step at which both agendas have a state, or 0 if there is none after the axiom.
        """
        for step in range(len(candidates) - 1, 0, -1):
            if candidates[step] and oracles[step]:
                return step
        return 0

    @staticmethod
    def max_violation(candidate: DerivationState,
                      oracle: DerivationState) -> Tuple[float, Optional[DerivationState],
                                                        Optional[DerivationState]]:
        """
        Walks both derivations back to the axiom, always moving the side with the larger step,
        and returns the largest hinge error among the matched steps where the candidate scores
        higher, along with the two states at that step.  Returns ``(0.0, None, None)`` when the
        candidate never outscores the oracle.
        """
        error_max = 0.0
        candidate_max = None
        oracle_max = None
        while candidate is not None and oracle is not None:
            if candidate.step > oracle.step:
                candidate = candidate.derivation
            elif oracle.step > candidate.step:
                oracle = oracle.derivation
            else:
                error = max(1.0 - (oracle.score - candidate.score), 0.0)
                if candidate.score > oracle.score and error > error_max:
                    error_max = error
                    candidate_max = candidate
                    oracle_max = oracle
                candidate = candidate.derivation
                oracle = oracle.derivation
        return error_max, candidate_max, oracle_max

    def _margin_best(self, candidate: DerivationState, oracle: DerivationState) -> float:
        error, candidate_max, oracle_max = self.max_violation(candidate, oracle)
        if candidate_max is None:
            return 0.0
        self.backward[candidate_max] += 1.0
        self.backward[oracle_max] -= 1.0
        self.activate(candidate_max)
        self.activate(oracle_max)
        logger.debug("violation %f at step %d", error, candidate_max.step)
        return error

    def _margin_all_pairs(self, candidate_beam, oracle_beam) -> float:
        semiring = self._semiring
        score_min = min(oracle.score for oracle in oracle_beam)
        # Candidates scoring no more than every oracle state cannot violate the margin.
        candidate_beam = [candidate for candidate in candidate_beam if candidate.score > score_min]

        normalizer_oracle = semiring.sum(semiring.exp(oracle.score) for oracle in oracle_beam)
        normalizer_candidate = semiring.sum(semiring.exp(candidate.score)
                                            for candidate in candidate_beam)

        loss = 0.0
        found = False
        for candidate in candidate_beam:
            for oracle in oracle_beam:
                error, candidate_max, oracle_max = self.max_violation(candidate, oracle)
                if candidate_max is None:
                    continue
                weight = (semiring.ratio(semiring.exp(candidate.score), normalizer_candidate)
                          * semiring.ratio(semiring.exp(oracle.score), normalizer_oracle))
                self.backward[candidate_max] += weight
                self.backward[oracle_max] -= weight
                loss += error * weight
                found = True

        if not found:
            return 0.0
        for state in candidate_beam:
            self.activate(state)
        for state in oracle_beam:
            self.activate(state)
        logger.debug("weighted violation %f over %d x %d pairs",
                     loss, len(candidate_beam), len(oracle_beam))
        return loss
