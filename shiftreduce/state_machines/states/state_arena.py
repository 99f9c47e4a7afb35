from typing import List

from shiftreduce.state_machines.states.derivation_state import DerivationState


class StateArena:
    """
    Owns every ``DerivationState`` built during one parse.  States get consecutive slots and are
    dropped together by ``reset()``; nothing is released one state at a time.
    """
    def __init__(self) -> None:
        self._states: List[DerivationState] = []

    def allocate(self, **fields) -> DerivationState:
        state = DerivationState(slot=len(self._states), **fields)
        self._states.append(state)
        return state

    def reset(self) -> None:
        self._states = []

    def __getitem__(self, slot: int) -> DerivationState:
        return self._states[slot]

    def __len__(self) -> int:
        return len(self._states)
