"""
Utilities and helpers for writing tests.
"""
from typing import Any, Dict, List, Sequence

import torch
from nltk import Tree
from numpy.testing import assert_allclose

from shiftreduce.common.testing.test_case import ShiftReduceTestCase
from shiftreduce.data import Vocabulary, binarize
from shiftreduce.parameters import ParameterStore
from shiftreduce.state_machines.states import (
    DerivationState,
    Operation,
    OperationType,
    Span,
    StateArena,
)

TOY_TREES = [
    "(S (NP (DT the) (NN dog)) (VP (VBZ barks)))",
    "(S (NP (DT the) (NN cat)) (VP (VBD saw) (NP (DT the) (NN dog))))",
    "(S (NP (PRP it)) (VP (VBD ran) (ADVP (RB away)) (PP (IN to) (NP (NN town)))))",
]


def toy_trees() -> List[Tree]:
    """The binarized `TOY_TREES`."""
    return [binarize(Tree.fromstring(tree)) for tree in TOY_TREES]


def toy_vocabulary() -> Vocabulary:
    return Vocabulary.from_trees(toy_trees())


def toy_parameters(
    hidden: int = 4, embedding: int = 3, scale: float = 0.5, seed: int = 13
) -> ParameterStore:
    """
    A `ParameterStore` over `toy_vocabulary()` filled with small random values.
    """
    theta = ParameterStore(hidden, embedding, toy_vocabulary())
    theta.randomize(scale, seed)
    return theta


def derivation_chain(
    arena: StateArena, scores: Sequence[float], start: DerivationState = None
) -> List[DerivationState]:
    """
    Allocates a linear derivation with the given cumulative `scores`, one state per step.  The
    chain continues `start` if given, and otherwise begins with an axiom of score 0 that is not
    part of the returned list.  Only `step`, `score` and the back-references are meaningful.
    """
    if start is None:
        start = arena.allocate(
            step=0,
            next=0,
            unary=0,
            operation=Operation(OperationType.AXIOM),
            label="",
            head="",
            span=Span(-1, 0),
            stack=None,
            derivation=None,
            reduced=None,
            layer=torch.zeros(0, dtype=torch.float64),
            score=0.0,
        )
    states = []
    previous = start
    for score in scores:
        previous = arena.allocate(
            step=previous.step + 1,
            next=previous.next,
            unary=0,
            operation=Operation(OperationType.UNARY, 1),
            label="X",
            head="",
            span=previous.span,
            stack=previous.stack,
            derivation=previous,
            reduced=None,
            layer=torch.zeros(0, dtype=torch.float64),
            score=float(score),
        )
        states.append(previous)
    return states


def assert_metrics_values(
    metrics: Dict[str, Any],
    desired_values: Dict[str, Any],
    rtol: float = 0.0001,
    atol: float = 1e-05,
):
    for key in metrics:
        assert_allclose(metrics[key], desired_values[key], rtol=rtol, atol=atol)
