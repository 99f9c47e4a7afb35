from dataclasses import dataclass
from enum import IntEnum
from typing import NamedTuple, Optional

import torch


class OperationType(IntEnum):
    AXIOM = 0
    SHIFT = 1
    REDUCE = 2
    UNARY = 3
    IDLE = 4
    FINAL = 5


class Operation(NamedTuple):
    """
    The action that produced a state.  `closure` counts consecutive UNARY actions: it is
    `previous.closure + 1` for UNARY and 0 for everything else.
    """

    kind: OperationType
    closure: int = 0

    @property
    def is_finished(self) -> bool:
        return self.kind in (OperationType.FINAL, OperationType.IDLE)

    def __str__(self) -> str:
        if self.kind == OperationType.UNARY:
            return f"UNARY({self.closure})"
        return self.kind.name


class Span(NamedTuple):
    """The covered input positions `[first, last)`; the axiom covers `(-1, 0)`."""

    first: int
    last: int


@dataclass(frozen=True, eq=False)
class DerivationState:
    """
    One parser configuration.  States are created by a ``StateArena`` and never modified; all
    back-references point at states of a strictly earlier ``step``, so the states of one parse
    form a DAG in which many search paths share their tails.

    Equality and hashing are by identity (the arena ``slot``), which is what lets a state key the
    loss attribution map of an objective.

    Parameters
    ----------
    slot : ``int``
        Position in the arena that allocated this state.
    step : ``int``
        Number of transitions since the axiom.
    next : ``int``
        Number of input tokens consumed.
    unary : ``int``
        Number of UNARY actions along this derivation.
    operation : ``Operation``
    label : ``str``
        Syntactic label of the constituent on top of the stack.
    head : ``str``
        Lexical head of that constituent.
    span : ``Span``
    stack : ``DerivationState``
        The state below this one on the parser stack.
    derivation : ``DerivationState``
        The immediately preceding state in the action history.
    reduced : ``DerivationState``
        The left child popped by a REDUCE, ``None`` otherwise.
    layer : ``torch.Tensor``
        The ``(hidden,)`` activation representing this configuration.
    score : ``float``
        Cumulative action score along the derivation.
    """
    slot: int
    step: int
    next: int
    unary: int
    operation: Operation
    label: str
    head: str
    span: Span
    stack: Optional['DerivationState']
    derivation: Optional['DerivationState']
    reduced: Optional['DerivationState']
    layer: torch.Tensor
    score: float

    def __post_init__(self) -> None:
        for name in ('stack', 'derivation', 'reduced'):
            reference = getattr(self, name)
            if reference is not None and reference.step >= self.step:
                raise ValueError(f"{name} of a step {self.step} state points at "
                                 f"step {reference.step}")

    def is_finished(self) -> bool:
        return self.operation.is_finished

    def history(self):
        """
        Yields this state and then every state along its ``derivation`` chain, back to the axiom.
        """
        state = self
        while state is not None:
            yield state
            state = state.derivation

    def __repr__(self) -> str:
        return (f"DerivationState(slot={self.slot}, step={self.step}, next={self.next}, "
                f"operation={self.operation}, label={self.label!r}, span={tuple(self.span)}, "
                f"score={self.score:.4f})")
