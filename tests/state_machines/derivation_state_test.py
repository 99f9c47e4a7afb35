import pytest
import torch

from shiftreduce.common.testing import ShiftReduceTestCase, derivation_chain
from shiftreduce.state_machines import Operation, OperationType, Span, StateArena


class TestDerivationState(ShiftReduceTestCase):
    def test_back_references_must_point_backwards(self):
        arena = StateArena()
        state = derivation_chain(arena, [1.0])[0]
        with pytest.raises(ValueError):
            arena.allocate(
                step=state.step,
                next=0,
                unary=0,
                operation=Operation(OperationType.IDLE),
                label="",
                head="",
                span=Span(0, 1),
                stack=None,
                derivation=state,
                reduced=None,
                layer=torch.zeros(1, dtype=torch.float64),
                score=0.0,
            )

    def test_states_are_immutable(self):
        state = derivation_chain(StateArena(), [1.0])[0]
        with pytest.raises(AttributeError):
            state.score = 2.0

    def test_identity_equality(self):
        arena = StateArena()
        first = derivation_chain(arena, [1.0])[0]
        second = derivation_chain(arena, [1.0], start=first.derivation)[0]
        assert first != second
        assert len({first, second, first}) == 2

    def test_history(self):
        arena = StateArena()
        states = derivation_chain(arena, [1.0, 2.0, 3.0])
        history = list(states[-1].history())
        assert history[:3] == states[::-1]
        assert history[-1].operation.kind == OperationType.AXIOM
        assert len(history) == 4

    def test_operation(self):
        assert Operation(OperationType.FINAL).is_finished
        assert Operation(OperationType.IDLE).is_finished
        assert not Operation(OperationType.UNARY, 2).is_finished
        assert str(Operation(OperationType.UNARY, 2)) == "UNARY(2)"
        assert str(Operation(OperationType.SHIFT)) == "SHIFT"

    def test_arena_slots(self):
        arena = StateArena()
        states = derivation_chain(arena, [1.0, 2.0])
        assert [state.slot for state in states] == [1, 2]
        assert arena[2] is states[1]
        arena.reset()
        assert len(arena) == 0
