import logging
from collections import Counter
from typing import Iterable, List, Tuple

from nltk import Tree
from overrides import overrides

from shiftreduce.common import FromParams
from shiftreduce.common.checks import ConfigurationError
from shiftreduce.data.trees import is_binarization_label, is_preterminal
from shiftreduce.state_machines.states import DerivationState, OperationType
from shiftreduce.training.metrics.metric import Metric

logger = logging.getLogger(__name__)


class EvalbScorer(FromParams):
    """
    Labeled bracket scoring in the manner of EVALB, computed in process so it can score every
    candidate of a beam.  A bracket is `(label, first, last)` for every constituent above the
    preterminals; the scores are multiset overlaps of brackets.

    # Parameters

    ignore_binarization_labels : `bool`, optional (default = `True`)
        Skip the intermediate `PARENT|<...>` nodes introduced by binarization, so that binarized
        derivations are scored like their original trees.
    ignore_labels : `Iterable[str]`, optional (default = `()`)
        Further labels to skip, such as a `ROOT` label wrapped around every tree.
    """

    def __init__(
        self, ignore_binarization_labels: bool = True, ignore_labels: Iterable[str] = ()
    ) -> None:
        self._ignore_binarization_labels = ignore_binarization_labels
        self._ignore_labels = set(ignore_labels)

    def _keep(self, label: str) -> bool:
        if label in self._ignore_labels:
            return False
        return not (self._ignore_binarization_labels and is_binarization_label(label))

    def brackets(self, state: DerivationState) -> Counter:
        """
        The brackets of the derivation ending at `state`: one for every REDUCE or UNARY state
        along its history.
        """
        brackets: Counter = Counter()
        for previous in state.history():
            if previous.operation.kind in (OperationType.REDUCE, OperationType.UNARY):
                if self._keep(previous.label):
                    brackets[(previous.label, previous.span.first, previous.span.last)] += 1
        return brackets

    def tree_brackets(self, tree: Tree) -> Counter:
        brackets: Counter = Counter()
        self._collect(tree, 0, brackets)
        return brackets

    def _collect(self, tree: Tree, first: int, brackets: Counter) -> int:
        if isinstance(tree, str):
            return first + 1
        if is_preterminal(tree):
            return first + 1
        last = first
        for child in tree:
            last = self._collect(child, last, brackets)
        if self._keep(tree.label()):
            brackets[(tree.label(), first, last)] += 1
        return last

    @staticmethod
    def matches(reference: Counter, candidate: Counter) -> Tuple[int, int, int]:
        """
        Returns `(matched, reference total, candidate total)`.
        """
        matched = sum((reference & candidate).values())
        return matched, sum(reference.values()), sum(candidate.values())

    def score(self, reference: Counter, candidate: Counter) -> float:
        """
        Labeled bracket F1 of `candidate` against `reference`.  Two empty bracket sets agree
        perfectly.
        """
        matched, num_reference, num_candidate = self.matches(reference, candidate)
        if num_reference == 0 and num_candidate == 0:
            return 1.0
        if matched == 0:
            return 0.0
        precision = matched / num_candidate
        recall = matched / num_reference
        return 2 * precision * recall / (precision + recall)


@Metric.register("evalb")
class EvalbBracketingScorer(Metric):
    """
    Accumulates labeled bracket counts over a corpus and reports micro-averaged precision,
    recall and F1, like the EVALB summary.

    # Parameters

    ignore_binarization_labels : `bool`, optional (default = `True`)
    ignore_labels : `List[str]`, optional (default = `None`)
        Passed to the `EvalbScorer` that extracts the brackets.
    """

    def __init__(
        self, ignore_binarization_labels: bool = True, ignore_labels: List[str] = None
    ) -> None:
        self._scorer = EvalbScorer(ignore_binarization_labels, ignore_labels or ())
        self._correct_predicted_brackets = 0
        self._gold_brackets = 0
        self._predicted_brackets = 0

    @overrides
    def __call__(self, predicted_trees: List[Tree], gold_trees: List[Tree]) -> None:  # type: ignore
        """
        # Parameters

        predicted_trees : `List[Tree]`
            A list of predicted NLTK Trees to compute score for.
        gold_trees : `List[Tree]`
            A list of gold NLTK Trees to use as a reference.
        """
        if len(predicted_trees) != len(gold_trees):
            raise ConfigurationError(
                f"got {len(predicted_trees)} predicted trees for {len(gold_trees)} gold trees"
            )
        for predicted, gold in zip(predicted_trees, gold_trees):
            matched, num_gold, num_predicted = self._scorer.matches(
                self._scorer.tree_brackets(gold), self._scorer.tree_brackets(predicted)
            )
            self._correct_predicted_brackets += matched
            self._gold_brackets += num_gold
            self._predicted_brackets += num_predicted

    @overrides
    def get_metric(self, reset: bool = False):
        """
        # Returns

        The average precision, recall and f1.
        """
        recall = (
            self._correct_predicted_brackets / self._gold_brackets
            if self._gold_brackets > 0
            else 0.0
        )
        precision = (
            self._correct_predicted_brackets / self._predicted_brackets
            if self._predicted_brackets > 0
            else 0.0
        )
        f1_measure = (
            2 * (precision * recall) / (precision + recall) if precision + recall > 0 else 0.0
        )

        if reset:
            self.reset()
        return {
            "evalb_recall": recall,
            "evalb_precision": precision,
            "evalb_f1_measure": f1_measure,
        }

    @overrides
    def reset(self) -> None:
        self._correct_predicted_brackets = 0
        self._gold_brackets = 0
        self._predicted_brackets = 0
