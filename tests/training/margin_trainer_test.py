import pytest
from nltk import Tree
from numpy.testing import assert_allclose

from shiftreduce.common import Params
from shiftreduce.common.checks import ConfigurationError
from shiftreduce.common.testing import ShiftReduceTestCase, toy_parameters, toy_trees
from shiftreduce.data import Vocabulary
from shiftreduce.objectives import MarginEvalb, MarginMax
from shiftreduce.parameters import ParameterStore
from shiftreduce.state_machines import BeamSearch, OperationType
from shiftreduce.training import MarginTrainer


class TestMarginTrainer(ShiftReduceTestCase):
    def setup_method(self):
        super().setup_method()
        self.theta = toy_parameters()
        self.trainer = MarginTrainer(BeamSearch(beam_size=4))

    def test_train_instance(self):
        for tree in toy_trees():
            output = self.trainer.train_instance(self.theta, tree)
            assert len(output.candidates) == len(output.oracles)
            assert all(len(beam) == 1 for beam in output.oracles)
            assert output.loss >= 0.0
            assert_allclose(sum(output.backward.values()), 0.0, atol=1e-12)
            for state, loss in output.backward.items():
                assert state in output.states[state.step]
                assert abs(loss) == 1.0

    def test_outputs_survive_the_next_instance(self):
        first, second = toy_trees()[:2]
        output = self.trainer.train_instance(self.theta, first)
        backward = dict(output.backward)
        self.trainer.train_instance(self.theta, second)
        assert output.backward == backward

    def test_parameters_are_only_read(self):
        before = self.theta.clone()
        for tree in toy_trees():
            self.trainer.train_instance(self.theta, tree)
        assert self.theta == before

    def test_agendas_fit_the_oracle(self):
        trainer = MarginTrainer(BeamSearch(beam_size=2, closure_limit=1, unary_limit=0))
        tree = toy_trees()[2]
        output = trainer.train_instance(self.theta, tree)
        final = output.oracles[-1][0]
        assert final.operation.kind in (OperationType.FINAL, OperationType.IDLE)
        assert final.is_finished()

    def test_margin_evalb(self):
        trainer = MarginTrainer(BeamSearch(beam_size=4), objective=MarginEvalb())
        for tree in toy_trees():
            output = trainer.train_instance(self.theta, tree)
            assert -1.0 <= output.loss <= 0.0
            for state in output.backward:
                assert state.step == len(output.candidates) - 1

    def test_zero_parameters(self):
        theta = ParameterStore(hidden=2, embedding=2, vocab=self.theta.vocab)
        for tree in toy_trees():
            output = self.trainer.train_instance(theta, tree)
            # With equal scores nothing outscores the oracle.
            assert output.loss == 0.0
            assert not output.backward

    def test_train(self):
        metrics = self.trainer.train(self.theta, toy_trees())
        assert set(metrics) == {"loss", "evalb_recall", "evalb_precision", "evalb_f1_measure"}
        assert metrics["loss"] >= 0.0
        assert 0.0 <= metrics["evalb_f1_measure"] <= 1.0
        # The metrics are reset after an epoch.
        assert self.trainer.get_metrics()["loss"] == 0.0

    def test_unbinarized_trees_are_rejected(self):
        with pytest.raises(ConfigurationError):
            self.trainer.train_instance(self.theta, Tree.fromstring("(S (A a) (B b) (C c))"))

    def test_from_params(self):
        trainer = MarginTrainer.from_params(
            Params(
                {
                    "beam_search": {"beam_size": 2},
                    "objective": {"type": "margin_max", "all_pairs": True},
                    "engine": {"activation": "tanh"},
                }
            )
        )
        assert isinstance(trainer._objective, MarginMax)
        assert trainer._objective._all_pairs
        output = trainer.train_instance(self.theta, toy_trees()[0])
        assert output.loss >= 0.0

        trainer = MarginTrainer.from_params(Params({"beam_search": {"beam_size": 2}}))
        assert isinstance(trainer._objective, MarginMax)

    def test_long_sentences(self):
        words = [f"w{i}" for i in range(200)]
        tree = Tree("NN", [words[-1]])
        for word in reversed(words[:-1]):
            tree = Tree("NP", [Tree("NN", [word]), tree])
        theta = ParameterStore(hidden=2, embedding=1, vocab=Vocabulary.from_trees([tree]))
        theta.randomize(scale=0.5, seed=3)
        trainer = MarginTrainer(BeamSearch(beam_size=1))
        output = trainer.train_instance(theta, tree)
        # Finished candidates are padded with IDLE for more than a thousand steps.
        assert len(output.candidates) > 1000
        assert output.candidates[-1][0].operation.kind == OperationType.IDLE
        metrics = trainer.get_metrics()
        assert 0.0 <= metrics["evalb_f1_measure"] <= 1.0
