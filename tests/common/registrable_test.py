import pytest

from shiftreduce.common import Params, Registrable
from shiftreduce.common.checks import ConfigurationError
from shiftreduce.common.testing import ShiftReduceTestCase
from shiftreduce.nn import Semiring
from shiftreduce.objectives import MarginObjective
from shiftreduce.training.metrics import Metric


@pytest.fixture()
def empty_registrable():
    class EmptyRegistrable(Registrable):
        pass

    yield EmptyRegistrable


class TestRegistrable(ShiftReduceTestCase):
    def test_registrable_functionality_works(self):
        # This function tests the basic `Registrable` functionality:
        #
        #   1. The decorator should add things to the list.
        #   2. The decorator should crash when adding a duplicate (unless exist_ok=True).
        #   3. If a default is given, it should show up first in the list.
        #
        # We'll test this with the MarginObjective class, just to have a concrete class to use,
        # and one that has a default.
        base_class = MarginObjective
        assert "fake" not in base_class.list_available()

        @base_class.register("fake")
        class Fake(base_class):
            pass

        assert base_class.by_name("fake") == Fake

        default = base_class.default_implementation
        assert base_class.list_available()[0] == default
        base_class.default_implementation = "fake"
        assert base_class.list_available()[0] == "fake"

        with pytest.raises(ConfigurationError):
            base_class.default_implementation = "not present"
            base_class.list_available()
        base_class.default_implementation = default

        # Verify that registering under a name that already exists
        # causes a ConfigurationError.
        with pytest.raises(ConfigurationError):

            @base_class.register("fake")
            class FakeAlternate(base_class):
                pass

        # Registering under a name that already exists should overwrite
        # if exist_ok=True.
        @base_class.register("fake", exist_ok=True)  # noqa
        class FakeAlternate2(base_class):
            pass

        assert base_class.by_name("fake") == FakeAlternate2

        del Registrable._registry[base_class]["fake"]

    def test_registry_has_builtin_objectives(self):
        assert MarginObjective.by_name("margin_max").__name__ == "MarginMax"
        assert MarginObjective.by_name("margin_evalb").__name__ == "MarginEvalb"

    def test_registry_has_builtin_semirings(self):
        assert Semiring.by_name("log").__name__ == "LogSemiring"
        assert Semiring.by_name("linear").__name__ == "LinearSemiring"

    def test_registry_has_builtin_metrics(self):
        assert Metric.by_name("average").__name__ == "Average"
        assert Metric.by_name("evalb").__name__ == "EvalbBracketingScorer"

    def test_unknown_names(self, empty_registrable):
        with pytest.raises(ConfigurationError):
            MarginObjective.by_name("hinge")
        with pytest.raises(ConfigurationError):
            empty_registrable.from_params(Params({"type": "anything"}))
        assert empty_registrable.list_available() == []

    def test_fully_qualified_names(self):
        subclass = MarginObjective.by_name("shiftreduce.objectives.margin_max.MarginMax")
        assert subclass.__name__ == "MarginMax"
        with pytest.raises(ConfigurationError):
            MarginObjective.by_name("shiftreduce.objectives.not_a_module.Objective")
        with pytest.raises(ConfigurationError):
            MarginObjective.by_name("shiftreduce.objectives.margin_max.NotAnObjective")
