"""
A Vocabulary maps terminals (words) to embedding columns and grammar labels to the rows of the
per-action weight blocks, allowing words to be mapped to an out-of-vocabulary token.
"""
import codecs
import logging
import os
from collections import Counter
from typing import Dict, Iterable, List

from nltk import Tree

from shiftreduce.common.checks import ConfigurationError
from shiftreduce.data.trees import check_binarized, is_preterminal

logger = logging.getLogger(__name__)

DEFAULT_OOV_TOKEN = "@@UNKNOWN@@"

# Reserved labels.  EPSILON marks "no label / no head"; FINAL and IDLE get their own
# classification rows but no category block.
EPSILON = "@@EPSILON@@"
FINAL = "@@FINAL@@"
IDLE = "@@IDLE@@"

TERMINALS = "terminals"
LABELS = "labels"
# Which labels each action may carry.
SHIFT_LABELS = "shift_labels"
REDUCE_LABELS = "reduce_labels"
UNARY_LABELS = "unary_labels"

_NAMESPACES = (TERMINALS, LABELS, SHIFT_LABELS, REDUCE_LABELS, UNARY_LABELS)
LEXICON_FILE = "lexicon.txt"


class Vocabulary:
    """
    A `Vocabulary` is the closed lookup table behind the parameter store: a label's category
    block starts at row `category_index(label) * hidden` of the shift/reduce/unary weights, and
    its score row is `classification_index(label)` of the classification matrix.  `FINAL` and
    `IDLE` are appended after the regular labels in the classification rows.

    Terminal index 0 is reserved for the out-of-vocabulary token.

    # Parameters

    terminals : `Iterable[str]`, optional
        Words, in index order (after the OOV token).
    shift_labels : `Iterable[str]`, optional
        Preterminal (part-of-speech) labels that SHIFT may assign.
    reduce_labels : `Iterable[str]`, optional
        Labels that REDUCE may assign to a binary constituent.
    unary_labels : `Iterable[str]`, optional
        Labels that UNARY may assign.
    lexicon : `Dict[str, Iterable[str]]`, optional
        Restricts the shift labels tried for a known word to the tags it was seen with.
    oov_token : `str`, optional (default=`DEFAULT_OOV_TOKEN`)
        The string used for out of vocabulary terminals.
    """

    def __init__(
        self,
        terminals: Iterable[str] = (),
        shift_labels: Iterable[str] = (),
        reduce_labels: Iterable[str] = (),
        unary_labels: Iterable[str] = (),
        lexicon: Dict[str, Iterable[str]] = None,
        oov_token: str = DEFAULT_OOV_TOKEN,
    ) -> None:
        self._oov_token = oov_token
        self._token_to_index: Dict[str, Dict[str, int]] = {
            namespace: {} for namespace in _NAMESPACES
        }
        self._index_to_token: Dict[str, Dict[int, str]] = {
            namespace: {} for namespace in _NAMESPACES
        }
        self._lexicon: Dict[str, List[str]] = {}

        self.add_token_to_namespace(oov_token, TERMINALS)
        for terminal in terminals:
            self.add_token_to_namespace(terminal, TERMINALS)
        for namespace, labels in (
            (SHIFT_LABELS, shift_labels),
            (REDUCE_LABELS, reduce_labels),
            (UNARY_LABELS, unary_labels),
        ):
            for label in labels:
                self.add_label(label, namespace)
        for word, tags in (lexicon or {}).items():
            for tag in tags:
                self.add_lexical_entry(word, tag)

    @classmethod
    def from_trees(cls, trees: Iterable[Tree], min_count: int = 1) -> "Vocabulary":
        """
        Collects terminals and labels from binarized gold trees.  Words seen fewer than
        `min_count` times are left to the OOV token.
        """
        logger.info("Fitting vocabulary from trees.")
        word_counts: Counter = Counter()
        vocab = cls()
        num_trees = 0
        for tree in trees:
            check_binarized(tree)
            num_trees += 1
            for subtree in tree.subtrees():
                if is_preterminal(subtree):
                    word_counts[subtree[0]] += 1
                    vocab.add_label(subtree.label(), SHIFT_LABELS)
                    vocab.add_lexical_entry(subtree[0], subtree.label())
                elif len(subtree) == 2:
                    vocab.add_label(subtree.label(), REDUCE_LABELS)
                else:
                    vocab.add_label(subtree.label(), UNARY_LABELS)
        for word, count in word_counts.most_common():
            if count >= min_count:
                vocab.add_token_to_namespace(word, TERMINALS)
        logger.info(
            "Vocabulary from %d trees: %d terminals, %d labels",
            num_trees,
            vocab.num_terminals,
            vocab.num_categories,
        )
        return vocab

    def add_token_to_namespace(self, token: str, namespace: str) -> int:
        """
        Adds `token` to the index, if it is not already present.  Either way, we return the index of
        the token.
        """
        if not isinstance(token, str):
            raise ValueError(
                "Vocabulary tokens must be strings, or saving and loading will break."
                "  Got %s (with type %s)" % (repr(token), type(token))
            )
        if token not in self._token_to_index[namespace]:
            index = len(self._token_to_index[namespace])
            self._token_to_index[namespace][token] = index
            self._index_to_token[namespace][index] = token
            return index
        else:
            return self._token_to_index[namespace][token]

    def add_label(self, label: str, namespace: str) -> int:
        """
        Registers `label` for one action (`namespace`) and gives it a category, if it does not
        have one yet.  Returns the category index.
        """
        if label in (EPSILON, FINAL, IDLE):
            raise ConfigurationError(f"{label} is reserved")
        self.add_token_to_namespace(label, namespace)
        return self.add_token_to_namespace(label, LABELS)

    def add_lexical_entry(self, word: str, tag: str) -> None:
        tags = self._lexicon.setdefault(word, [])
        if tag not in tags:
            tags.append(tag)

    def get_terminal_index(self, word: str) -> int:
        return self._token_to_index[TERMINALS].get(word, 0)

    def get_token_from_index(self, index: int, namespace: str = TERMINALS) -> str:
        return self._index_to_token[namespace][index]

    def get_tokens(self, namespace: str) -> List[str]:
        return list(self._token_to_index[namespace])

    def category_index(self, label: str) -> int:
        try:
            return self._token_to_index[LABELS][label]
        except KeyError:
            raise ConfigurationError(f"label {label!r} has no category in this vocabulary")

    def classification_index(self, label: str) -> int:
        if label == FINAL:
            return self.num_categories
        elif label == IDLE:
            return self.num_categories + 1
        return self.category_index(label)

    def shift_labels_for(self, word: str) -> List[str]:
        """
        The preterminal labels SHIFT tries for `word`: the tags it was seen with, or every shift
        label for an unknown word.
        """
        if word in self._lexicon:
            return self._lexicon[word]
        return self.get_tokens(SHIFT_LABELS)

    @property
    def reduce_labels(self) -> List[str]:
        return self.get_tokens(REDUCE_LABELS)

    @property
    def unary_labels(self) -> List[str]:
        return self.get_tokens(UNARY_LABELS)

    @property
    def num_terminals(self) -> int:
        return len(self._token_to_index[TERMINALS])

    @property
    def num_categories(self) -> int:
        return len(self._token_to_index[LABELS])

    @property
    def num_classifications(self) -> int:
        return self.num_categories + 2

    def save_to_files(self, directory: str) -> None:
        """
        Persist this Vocabulary to files so it can be reloaded later.
        Each namespace corresponds to one file, with one token per line, plus a lexicon file.

        # Parameters

        directory : `str`
            The directory where we save the serialized vocabulary.
        """
        os.makedirs(directory, exist_ok=True)
        if os.listdir(directory):
            logger.warning("vocabulary serialization directory %s is not empty", directory)

        for namespace, mapping in self._index_to_token.items():
            namespace_filename = os.path.join(directory, namespace + ".txt")
            with codecs.open(namespace_filename, "w", "utf-8") as token_file:
                for i in range(len(mapping)):
                    print(mapping[i].replace("\n", "@@NEWLINE@@"), file=token_file)
        with codecs.open(os.path.join(directory, LEXICON_FILE), "w", "utf-8") as lexicon_file:
            for word, tags in self._lexicon.items():
                print(word + "\t" + " ".join(tags), file=lexicon_file)

    @classmethod
    def from_files(cls, directory: str, oov_token: str = DEFAULT_OOV_TOKEN) -> "Vocabulary":
        """
        Loads a `Vocabulary` that was serialized with `save_to_files`.  Label indices are
        reproduced exactly, since the parameter blocks depend on them.
        """
        logger.info("Loading vocabulary from %s", directory)

        def read(namespace: str) -> List[str]:
            with codecs.open(os.path.join(directory, namespace + ".txt"), "r", "utf-8") as handle:
                return [line.rstrip("\n").replace("@@NEWLINE@@", "\n") for line in handle]

        terminals = read(TERMINALS)
        if not terminals or terminals[0] != oov_token:
            raise ConfigurationError(f"{directory} does not start its terminals with {oov_token}")
        vocab = cls(oov_token=oov_token)
        for terminal in terminals[1:]:
            vocab.add_token_to_namespace(terminal, TERMINALS)
        for label in read(LABELS):
            vocab.add_token_to_namespace(label, LABELS)
        for namespace in (SHIFT_LABELS, REDUCE_LABELS, UNARY_LABELS):
            for label in read(namespace):
                vocab.add_token_to_namespace(label, namespace)

        with codecs.open(os.path.join(directory, LEXICON_FILE), "r", "utf-8") as lexicon_file:
            for line in lexicon_file:
                word, _, tags = line.rstrip("\n").partition("\t")
                for tag in tags.split():
                    vocab.add_lexical_entry(word, tag)
        return vocab

    def __eq__(self, other):
        if isinstance(self, other.__class__):
            return self.__dict__ == other.__dict__
        return False

    def __repr__(self) -> str:
        namespaces = [f"{name}, Size: {len(self._token_to_index[name])} ||" for name in _NAMESPACES]
        return " ".join(["Vocabulary with namespaces: "] + namespaces)
