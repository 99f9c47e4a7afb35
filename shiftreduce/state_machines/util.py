from typing import List, Tuple

from nltk import Tree

from shiftreduce.state_machines.states import DerivationState, OperationType


def state_to_tree(state: DerivationState) -> Tree:
    """
    Rebuilds the constituent on top of the stack of ``state`` as an ``nltk.Tree``.  For a FINAL
    or IDLE state this is the whole parse.  A REDUCE state's children are its ``reduced`` state
    and its ``derivation``, which is always the state that built the right child.

    Derivations padded with IDLE can be much longer than the tree is deep, so the walk keeps an
    explicit stack instead of recursing.
    """
    while state.operation.kind in (OperationType.FINAL, OperationType.IDLE):
        state = state.derivation

    built: List[Tree] = []
    pending: List[Tuple[DerivationState, bool]] = [(state, False)]
    while pending:
        current, expanded = pending.pop()
        kind = current.operation.kind
        if kind == OperationType.SHIFT:
            built.append(Tree(current.label, [current.head]))
        elif kind == OperationType.REDUCE:
            if expanded:
                right = built.pop()
                left = built.pop()
                built.append(Tree(current.label, [left, right]))
            else:
                # The left child is popped, and therefore built, first.
                pending.append((current, True))
                pending.append((current.derivation, False))
                pending.append((current.reduced, False))
        elif kind == OperationType.UNARY:
            if expanded:
                built.append(Tree(current.label, [built.pop()]))
            else:
                pending.append((current, True))
                pending.append((current.derivation, False))
        elif kind == OperationType.AXIOM:
            raise ValueError("the axiom has no tree")
        else:
            raise ValueError(f"{current} cannot appear inside a constituent")
    return built.pop()
