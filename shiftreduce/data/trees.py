"""
Helpers for the `nltk.Tree` objects that the oracle and the vocabulary read.  The transition
system only builds binary and unary constituents, so gold trees are binarized before use.
"""
from typing import Iterator

from nltk import Tree

from shiftreduce.common.checks import ConfigurationError

BINARIZATION_MARKER = "|"


def is_preterminal(tree: Tree) -> bool:
    return len(tree) == 1 and isinstance(tree[0], str)


def binarize(tree: Tree, horizontal_markovization: int = 1) -> Tree:
    """
    Returns a right-factored binary copy of `tree`.  Intermediate nodes are labeled
    `PARENT|<SIBLINGS>`, which the evalb scorer skips by default.
    """
    binarized = tree.copy(deep=True)
    binarized.chomsky_normal_form(
        factor="right", horzMarkov=horizontal_markovization, childChar=BINARIZATION_MARKER
    )
    return binarized


def is_binarization_label(label: str) -> bool:
    return BINARIZATION_MARKER in label


def check_binarized(tree: Tree) -> None:
    """
    Raises a `ConfigurationError` if some node of `tree` has more than two children, or mixes
    words with constituents.
    """
    for subtree in tree.subtrees():
        if is_preterminal(subtree):
            continue
        if len(subtree) > 2:
            raise ConfigurationError(
                f"tree is not binarized: {subtree.label()} has {len(subtree)} children"
            )
        if any(isinstance(child, str) for child in subtree):
            raise ConfigurationError(f"word directly under non-preterminal {subtree.label()}")


def preterminals(tree: Tree) -> Iterator[Tree]:
    for subtree in tree.subtrees():
        if is_preterminal(subtree):
            yield subtree
