from typing import Iterator, List, Optional

import torch

from shiftreduce.state_machines.states import DerivationState, StateArena


class Agenda:
    """
    The search frontier: one beam of ``DerivationStates`` per step.  The number of steps is
    fixed when the agenda is created, so a candidate search and an oracle search over the same
    sentence can be compared step by step.
    """
    def __init__(self, length: int) -> None:
        if length < 1:
            raise ValueError(f"an agenda needs at least one step, got {length}")
        self._beams: List[List[DerivationState]] = [[] for _ in range(length)]

    def push(self, state: DerivationState) -> None:
        if state.step >= len(self._beams):
            raise IndexError(f"step {state.step} is beyond an agenda of length {len(self._beams)}")
        self._beams[state.step].append(state)

    def prune(self, step: int, beam_size: int) -> None:
        """
        Sorts the beam at ``step`` by descending score and keeps the best ``beam_size`` states.
        Equal scores keep their insertion order.
        """
        beam = sorted(self._beams[step], key=lambda state: state.score, reverse=True)
        self._beams[step] = beam[:beam_size]

    def best(self, step: int) -> Optional[DerivationState]:
        """
        The highest scoring state at ``step`` (the first one pushed among equals), or ``None`` for
        an empty beam.
        """
        best_state = None
        for state in self._beams[step]:
            if best_state is None or state.score > best_state.score:
                best_state = state
        return best_state

    def clear(self) -> None:
        for beam in self._beams:
            beam.clear()

    def __getitem__(self, step: int) -> List[DerivationState]:
        return self._beams[step]

    def __len__(self) -> int:
        return len(self._beams)

    def __iter__(self) -> Iterator[List[DerivationState]]:
        return iter(self._beams)

    def __repr__(self) -> str:
        return f"Agenda({[len(beam) for beam in self._beams]})"


class SearchContext:
    """
    Everything one search over one sentence writes to: the ``StateArena`` its states come from,
    the ``Agenda`` they are pushed on, and the input ``queue`` computed by the axiom.  A training
    worker keeps its own contexts and reuses them across sentences with ``clear()``.

    Parameters
    ----------
    sentence : ``List[str]``
        The input words.
    length : ``int``
        Number of agenda steps.
    """
    def __init__(self, sentence: List[str], length: int) -> None:
        self.sentence = list(sentence)
        self.arena = StateArena()
        self.agenda = Agenda(length)
        # (hidden, len(sentence) + 1); column i represents the input from position i on.
        self.queue: torch.Tensor = None

    def clear(self, sentence: List[str] = None, length: int = None) -> None:
        """
        Drops every state in bulk, optionally retargeting the context to a new sentence and
        agenda length.
        """
        self.arena.reset()
        if length is not None and length != len(self.agenda):
            self.agenda = Agenda(length)
        else:
            self.agenda.clear()
        if sentence is not None:
            self.sentence = list(sentence)
        self.queue = None
