import pytest
from nltk import Tree

from shiftreduce.common.checks import ConfigurationError
from shiftreduce.common.testing import ShiftReduceTestCase, toy_parameters, toy_trees
from shiftreduce.data import Vocabulary
from shiftreduce.parameters import ParameterStore
from shiftreduce.state_machines import (
    Action,
    BeamSearch,
    OperationType,
    Oracle,
    OracleSearch,
    SearchContext,
    TransitionEngine,
    state_to_tree,
)


class TestOracle(ShiftReduceTestCase):
    def test_actions(self):
        tree = toy_trees()[0]
        assert Oracle().actions(tree) == [
            Action(OperationType.SHIFT, "DT", "the"),
            Action(OperationType.SHIFT, "NN", "dog"),
            Action(OperationType.REDUCE, "NP"),
            Action(OperationType.SHIFT, "VBZ", "barks"),
            Action(OperationType.UNARY, "VP"),
            Action(OperationType.REDUCE, "S"),
            Action(OperationType.FINAL),
        ]

    def test_binarized_trees_use_intermediate_labels(self):
        actions = Oracle().actions(toy_trees()[2])
        reduce_labels = [action.label for action in actions if action.kind == OperationType.REDUCE]
        assert any(label.startswith("VP|<") for label in reduce_labels)
        assert len(reduce_labels) == len(toy_trees()[2].leaves()) - 1

    def test_unbinarized_trees_are_rejected(self):
        tree = Tree.fromstring("(S (NP (DT a)) (VP (VB b)) (NP (NN c)))")
        with pytest.raises(ConfigurationError):
            Oracle().actions(tree)

    def test_str(self):
        assert str(Action(OperationType.SHIFT, "DT", "the")) == "SHIFT(DT the)"
        assert str(Action(OperationType.REDUCE, "NP")) == "REDUCE(NP)"
        assert str(Action(OperationType.IDLE)) == "IDLE"


class TestOracleSearch(ShiftReduceTestCase):
    def setup_method(self):
        super().setup_method()
        self.theta = toy_parameters()
        self.engine = TransitionEngine()

    def search(self, tree, length=None):
        sentence = tree.leaves()
        length = length or BeamSearch(beam_size=1).max_steps(len(sentence))
        context = SearchContext(sentence, length)
        self.engine.axiom(context, self.theta)
        actions = Oracle().actions(tree)
        return OracleSearch().search(self.engine, self.theta, context, actions), actions

    def test_one_state_per_step(self):
        for tree in toy_trees():
            agenda, actions = self.search(tree)
            assert all(len(beam) == 1 for beam in agenda)
            final = agenda[len(actions)][0]
            assert final.operation.kind == OperationType.FINAL
            for step in range(len(actions) + 1, len(agenda)):
                assert agenda[step][0].operation.kind == OperationType.IDLE

    def test_rebuilds_the_gold_tree(self):
        for tree in toy_trees():
            agenda, _ = self.search(tree)
            assert state_to_tree(agenda[-1][0]) == tree

    def test_spans_of_the_gold_constituents(self):
        agenda, _ = self.search(toy_trees()[0])
        spans = {
            (state.label, tuple(state.span))
            for beam in agenda
            for state in beam
            if state.operation.kind in (OperationType.REDUCE, OperationType.UNARY)
        }
        assert spans == {("NP", (0, 2)), ("VP", (2, 3)), ("S", (0, 3))}

    def test_scores_match_the_free_search_transitions(self):
        tree = toy_trees()[0]
        agenda, actions = self.search(tree)
        context = SearchContext(tree.leaves(), len(agenda))
        state = self.engine.axiom(context, self.theta)
        for action in actions:
            state = self.engine.apply(context, self.theta, state, action)
        assert state.score == agenda[len(actions)][0].score

    def test_too_many_actions(self):
        tree = toy_trees()[0]
        with pytest.raises(ValueError):
            self.search(tree, length=len(Oracle().actions(tree)))

    def test_action_lists_that_do_not_finish_are_rejected(self):
        tree = toy_trees()[0]
        context = SearchContext(tree.leaves(), 16)
        self.engine.axiom(context, self.theta)
        # Without FINAL the derivation cannot be padded with IDLE.
        actions = Oracle().actions(tree)[:-1]
        with pytest.raises(ValueError):
            OracleSearch().search(self.engine, self.theta, context, actions)

    def test_final_on_a_partial_derivation_is_rejected(self):
        tree = toy_trees()[0]
        context = SearchContext(tree.leaves(), 16)
        self.engine.axiom(context, self.theta)
        actions = Oracle().actions(tree)[:2] + [Action(OperationType.FINAL)]
        with pytest.raises(ValueError):
            OracleSearch().search(self.engine, self.theta, context, actions)

    def test_rebuilds_a_long_right_branching_tree(self):
        words = [f"w{i}" for i in range(200)]
        tree = Tree("NN", [words[-1]])
        for word in reversed(words[:-1]):
            tree = Tree("NP", [Tree("NN", [word]), tree])
        theta = ParameterStore(hidden=2, embedding=1, vocab=Vocabulary.from_trees([tree]))
        sentence = tree.leaves()
        length = BeamSearch(beam_size=1).max_steps(len(sentence))
        context = SearchContext(sentence, length)
        self.engine.axiom(context, theta)
        agenda = OracleSearch().search(self.engine, theta, context, Oracle().actions(tree))
        # The last state sits behind a long IDLE chain.
        assert length > 1000
        assert state_to_tree(agenda[-1][0]) == tree
