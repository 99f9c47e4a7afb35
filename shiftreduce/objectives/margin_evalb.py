import logging

from overrides import overrides

from shiftreduce.nn.semiring import LogSemiring, Semiring
from shiftreduce.objectives.margin_objective import MarginObjective
from shiftreduce.state_machines.agenda import Agenda
from shiftreduce.training.metrics.evalb_bracketing_scorer import EvalbScorer

logger = logging.getLogger(__name__)


@MarginObjective.register('margin_evalb')
class MarginEvalb(MarginObjective):
    """
    Expected risk over the final candidate beam.  Each candidate's quality is its labeled bracket
    F1 against the best matching oracle state, and the candidates are weighted by the softmax of
    ``score * scale``.  The objective is the negated expected quality; each candidate receives the
    loss ``-(quality - expectation) * probability``, so candidates better than the expectation are
    pushed up and worse ones down.  Unlike ``MarginMax`` there is no backward search: only the
    last step of each agenda is read, and loss goes to those final states directly.

    Parameters
    ----------
    scale : ``float``, optional (default = 1.0)
        Multiplies the candidate scores before normalization.
    semiring : ``Semiring``, optional (default = ``log``)
    scorer : ``EvalbScorer``, optional
        Extracts and compares brackets.  Binarization labels are ignored by default.
    """
    def __init__(self,
                 scale: float = 1.0,
                 semiring: Semiring = None,
                 scorer: EvalbScorer = None) -> None:
        super().__init__()
        self._scale = scale
        self._semiring = semiring or LogSemiring()
        self._scorer = scorer or EvalbScorer()

    @overrides
    def margin(self, candidates: Agenda, oracles: Agenda) -> float:
        semiring = self._semiring
        candidate_beam = candidates[-1]
        if not candidate_beam:
            logger.debug("empty final candidate beam, no loss")
            return 0.0
        references = [self._scorer.brackets(oracle) for oracle in oracles[-1]]

        qualities = []
        for candidate in candidate_beam:
            brackets = self._scorer.brackets(candidate)
            quality = 0.0
            for reference in references:
                quality = max(quality, self._scorer.score(reference, brackets))
            qualities.append(quality)

        weights = [semiring.exp(candidate.score * self._scale) for candidate in candidate_beam]
        normalizer = semiring.sum(weights)
        probabilities = [semiring.ratio(weight, normalizer) for weight in weights]
        expectation = sum(quality * probability
                          for quality, probability in zip(qualities, probabilities))

        for candidate, quality, probability in zip(candidate_beam, qualities, probabilities):
            loss = -(quality - expectation) * probability
            if loss == 0.0:
                continue
            self.backward[candidate] += loss
            self.activate(candidate)
        logger.debug("expected bracket F1 %f over %d candidates", expectation, len(candidate_beam))
        return -expectation
