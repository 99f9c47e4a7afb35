import logging
from typing import List, NamedTuple, Optional

import torch

from shiftreduce.common import FromParams
from shiftreduce.common.checks import ConfigurationError
from shiftreduce.data.vocabulary import EPSILON, FINAL, IDLE
from shiftreduce.nn.activations import Activation
from shiftreduce.parameters import ParameterStore
from shiftreduce.state_machines.agenda import SearchContext
from shiftreduce.state_machines.states import DerivationState, Operation, OperationType, Span

logger = logging.getLogger(__name__)


class Action(NamedTuple):
    """
    A transition to apply: ``head`` is only used by SHIFT, ``label`` by SHIFT, REDUCE and UNARY.
    """
    kind: OperationType
    label: Optional[str] = None
    head: Optional[str] = None

    def __str__(self) -> str:
        if self.kind == OperationType.SHIFT:
            return f"SHIFT({self.label} {self.head})"
        if self.kind in (OperationType.REDUCE, OperationType.UNARY):
            return f"{self.kind.name}({self.label})"
        return self.kind.name


class TransitionEngine(FromParams):
    """
    Computes successor states of the shift-reduce transition system.  Every action builds the new
    hidden layer as ``activation(bias + sum of weight blocks * inputs)``, where SHIFT, REDUCE and
    UNARY read the ``hidden``-row sub-block of their weights selected by the label's category,
    and adds ``Wc[classification(label)] . layer`` to the parent's score.  The new state is pushed
    on ``context.agenda[state.step + 1]``; no existing state is ever modified.

    The ``ParameterStore`` is passed to every call.

    Parameters
    ----------
    activation : ``Activation``, optional (default = ``hardtanh``)
        Applied to every hidden layer, including the input queue.
    """
    def __init__(self, activation: Activation = None) -> None:
        self._activation = activation or Activation.by_name('hardtanh')()

    def axiom(self,
              context: SearchContext,
              theta: ParameterStore,
              sentence: List[str] = None) -> DerivationState:
        """
        Precomputes the input queue by a backward recurrence over the sentence and pushes the
        single step-0 state.
        """
        if sentence is not None:
            context.sentence = list(sentence)
        words = context.sentence
        hidden = theta.hidden

        queue = torch.zeros(hidden, len(words) + 1, dtype=torch.float64)
        queue[:, len(words)] = self._activation(theta.Bqe[:, 0])
        for i in range(len(words), 0, -1):
            embedding = theta.terminal[:, theta.terminal_index(words[i - 1])]
            queue[:, i - 1] = self._activation(theta.Bqu[:, 0]
                                               + theta.Wqu[:, :hidden].mv(queue[:, i])
                                               + theta.Wqu[:, hidden:].mv(embedding))
        context.queue = queue

        state = context.arena.allocate(step=0,
                                       next=0,
                                       unary=0,
                                       operation=Operation(OperationType.AXIOM),
                                       label=EPSILON,
                                       head=EPSILON,
                                       span=Span(-1, 0),
                                       stack=None,
                                       derivation=None,
                                       reduced=None,
                                       layer=self._activation(theta.Ba[:, 0]),
                                       score=0.0)
        context.agenda.push(state)
        return state

    def shift(self,
              context: SearchContext,
              theta: ParameterStore,
              state: DerivationState,
              head: str,
              label: str) -> DerivationState:
        if not self.can_shift(context, state):
            raise ValueError(f"cannot SHIFT from {state}")
        hidden = theta.hidden
        embedding = theta.embedding
        offset = theta.offset_category(label)
        weights = theta.Wsh[offset:offset + hidden]
        next_position = state.next + 1

        layer = self._activation(theta.Bsh[offset:offset + hidden, 0]
                                 + weights[:, :hidden].mv(state.layer)
                                 + weights[:, hidden:hidden + embedding].mv(
                                         theta.terminal[:, theta.terminal_index(head)])
                                 + weights[:, hidden + embedding:].mv(
                                         context.queue[:, next_position]))
        return self._push(context, theta, state, layer,
                          next=next_position,
                          unary=state.unary,
                          operation=Operation(OperationType.SHIFT),
                          label=label,
                          head=head,
                          span=Span(state.next, state.next + 1),
                          stack=state,
                          reduced=None)

    def reduce(self,
               context: SearchContext,
               theta: ParameterStore,
               state: DerivationState,
               label: str) -> DerivationState:
        if not self.can_reduce(state):
            raise ValueError(f"cannot REDUCE from {state}")
        reduced = state.stack
        hidden = theta.hidden
        offset = theta.offset_category(label)
        weights = theta.Wre[offset:offset + hidden]

        layer = self._activation(theta.Bre[offset:offset + hidden, 0]
                                 + weights[:, :hidden].mv(state.layer)
                                 + weights[:, hidden:2 * hidden].mv(reduced.layer)
                                 + weights[:, 2 * hidden:].mv(context.queue[:, state.next]))
        return self._push(context, theta, state, layer,
                          next=state.next,
                          unary=state.unary,
                          operation=Operation(OperationType.REDUCE),
                          label=label,
                          head=EPSILON,
                          span=Span(reduced.span.first, state.span.last),
                          stack=reduced.stack,
                          reduced=reduced)

    def unary(self,
              context: SearchContext,
              theta: ParameterStore,
              state: DerivationState,
              label: str) -> DerivationState:
        if state.operation.kind == OperationType.AXIOM or state.is_finished():
            raise ValueError(f"cannot apply UNARY to {state}")
        hidden = theta.hidden
        offset = theta.offset_category(label)
        weights = theta.Wu[offset:offset + hidden]

        layer = self._activation(theta.Bu[offset:offset + hidden, 0]
                                 + weights[:, :hidden].mv(state.layer)
                                 + weights[:, hidden:].mv(context.queue[:, state.next]))
        return self._push(context, theta, state, layer,
                          next=state.next,
                          unary=state.unary + 1,
                          operation=Operation(OperationType.UNARY, state.operation.closure + 1),
                          label=label,
                          head=EPSILON,
                          span=state.span,
                          stack=state.stack,
                          reduced=None)

    def final(self,
              context: SearchContext,
              theta: ParameterStore,
              state: DerivationState) -> DerivationState:
        if not self.can_final(context, state):
            raise ValueError(f"cannot apply FINAL to {state}")
        layer = self._activation(theta.Bf[:, 0] + theta.Wf.mv(state.layer))
        return self._push(context, theta, state, layer,
                          next=state.next,
                          unary=state.unary,
                          operation=Operation(OperationType.FINAL),
                          label=FINAL,
                          head=EPSILON,
                          span=state.span,
                          stack=state.stack,
                          reduced=None)

    def idle(self,
             context: SearchContext,
             theta: ParameterStore,
             state: DerivationState) -> DerivationState:
        if not self.can_idle(state):
            raise ValueError(f"cannot apply IDLE to {state}")
        layer = self._activation(theta.Bi[:, 0] + theta.Wi.mv(state.layer))
        return self._push(context, theta, state, layer,
                          next=state.next,
                          unary=state.unary,
                          operation=Operation(OperationType.IDLE),
                          label=IDLE,
                          head=EPSILON,
                          span=state.span,
                          stack=state.stack,
                          reduced=None)

    def apply(self,
              context: SearchContext,
              theta: ParameterStore,
              state: DerivationState,
              action: Action) -> DerivationState:
        if action.kind == OperationType.SHIFT:
            return self.shift(context, theta, state, action.head, action.label)
        elif action.kind == OperationType.REDUCE:
            return self.reduce(context, theta, state, action.label)
        elif action.kind == OperationType.UNARY:
            return self.unary(context, theta, state, action.label)
        elif action.kind == OperationType.FINAL:
            return self.final(context, theta, state)
        elif action.kind == OperationType.IDLE:
            return self.idle(context, theta, state)
        raise ConfigurationError(f"{action} cannot be applied to an existing state")

    @staticmethod
    def _push(context: SearchContext,
              theta: ParameterStore,
              state: DerivationState,
              layer: torch.Tensor,
              **fields) -> DerivationState:
        row = theta.Wc[theta.offset_classification(fields['label'])]
        new_state = context.arena.allocate(step=state.step + 1,
                                           derivation=state,
                                           layer=layer,
                                           score=state.score + float(row.dot(layer)),
                                           **fields)
        context.agenda.push(new_state)
        return new_state

    @staticmethod
    def can_shift(context: SearchContext, state: DerivationState) -> bool:
        return state.next < len(context.sentence) and not state.is_finished()

    @staticmethod
    def can_reduce(state: DerivationState) -> bool:
        return (not state.is_finished()
                and state.stack is not None
                and state.stack.stack is not None)

    @staticmethod
    def can_unary(state: DerivationState, unary_limit: int, closure_limit: int) -> bool:
        return (state.operation.kind != OperationType.AXIOM
                and not state.is_finished()
                and state.unary < unary_limit
                and state.operation.closure < closure_limit)

    @staticmethod
    def can_final(context: SearchContext, state: DerivationState) -> bool:
        """
        The input is consumed and exactly one constituent is on the stack.
        """
        return (state.next == len(context.sentence)
                and not state.is_finished()
                and state.stack is not None
                and state.stack.operation.kind == OperationType.AXIOM)

    @staticmethod
    def can_idle(state: DerivationState) -> bool:
        return state.is_finished()

    @staticmethod
    def default_unary_limit(length: int, closure_limit: int) -> int:
        # A binary derivation over ``length`` words builds ``2 * length - 1`` constituents.
        return closure_limit * (2 * length - 1)

    @staticmethod
    def max_steps(length: int, unary_limit: int) -> int:
        """
        The number of agenda steps a complete derivation may need: the axiom, ``length`` SHIFTs,
        ``length - 1`` REDUCEs, up to ``unary_limit`` UNARYs and the FINAL.
        """
        if length < 1:
            raise ConfigurationError("cannot parse an empty sentence")
        return 2 * length + unary_limit + 1
