import pytest
from nltk import Tree

from shiftreduce.common.checks import ConfigurationError
from shiftreduce.common.testing import ShiftReduceTestCase, toy_trees
from shiftreduce.data import FINAL, IDLE, Vocabulary, binarize
from shiftreduce.data.vocabulary import DEFAULT_OOV_TOKEN


class TestVocabulary(ShiftReduceTestCase):
    def setup_method(self):
        super().setup_method()
        self.vocab = Vocabulary.from_trees(toy_trees())

    def test_from_trees_sorts_labels_by_action(self):
        assert set(self.vocab.get_tokens("shift_labels")) == {
            "DT",
            "NN",
            "VBZ",
            "VBD",
            "PRP",
            "RB",
            "IN",
        }
        assert set(self.vocab.unary_labels) == {"VP", "NP", "ADVP"}
        assert "S" in self.vocab.reduce_labels
        assert "NP" in self.vocab.reduce_labels
        # Every label has exactly one category, whichever actions use it.
        labels = self.vocab.get_tokens("labels")
        assert len(labels) == len(set(labels))
        assert self.vocab.num_categories == len(labels)

    def test_terminals(self):
        assert self.vocab.get_terminal_index(DEFAULT_OOV_TOKEN) == 0
        assert self.vocab.get_terminal_index("zebra") == 0
        index = self.vocab.get_terminal_index("dog")
        assert index > 0
        assert self.vocab.get_token_from_index(index) == "dog"
        assert self.vocab.num_terminals == len(set(self.words())) + 1

    def words(self):
        return [word for tree in toy_trees() for word in tree.leaves()]

    def test_min_count(self):
        vocab = Vocabulary.from_trees(toy_trees(), min_count=2)
        assert vocab.get_terminal_index("the") > 0
        assert vocab.get_terminal_index("barks") == 0
        # Rare words keep their tags.
        assert vocab.shift_labels_for("barks") == ["VBZ"]

    def test_classification_rows(self):
        categories = self.vocab.num_categories
        assert self.vocab.classification_index(FINAL) == categories
        assert self.vocab.classification_index(IDLE) == categories + 1
        assert self.vocab.num_classifications == categories + 2
        assert self.vocab.classification_index("NP") == self.vocab.category_index("NP")
        with pytest.raises(ConfigurationError):
            self.vocab.category_index(FINAL)

    def test_reserved_labels(self):
        with pytest.raises(ConfigurationError):
            Vocabulary(reduce_labels=[FINAL])

    def test_shift_labels_for(self):
        assert self.vocab.shift_labels_for("dog") == ["NN"]
        assert set(self.vocab.shift_labels_for("zebra")) == set(
            self.vocab.get_tokens("shift_labels")
        )

    def test_explicit_construction(self):
        vocab = Vocabulary(
            terminals=["a", "b"],
            shift_labels=["X"],
            reduce_labels=["Y", "X"],
            unary_labels=["Z"],
            lexicon={"a": ["X"]},
        )
        assert vocab.num_terminals == 3
        assert vocab.num_categories == 3
        assert vocab.category_index("X") == 0
        assert vocab.reduce_labels == ["Y", "X"]
        assert vocab.shift_labels_for("a") == ["X"]

    def test_from_trees_rejects_unbinarized_trees(self):
        with pytest.raises(ConfigurationError):
            Vocabulary.from_trees([Tree.fromstring("(S (A a) (B b) (C c))")])

    def test_saving_and_loading(self):
        vocab_dir = self.TEST_DIR / "vocab_save"
        self.vocab.save_to_files(vocab_dir)
        loaded = Vocabulary.from_files(vocab_dir)
        assert loaded == self.vocab
        for label in self.vocab.get_tokens("labels"):
            assert loaded.category_index(label) == self.vocab.category_index(label)

    def test_loading_checks_the_oov_token(self):
        vocab_dir = self.TEST_DIR / "vocab_save_oov"
        self.vocab.save_to_files(vocab_dir)
        with pytest.raises(ConfigurationError):
            Vocabulary.from_files(vocab_dir, oov_token="<unk>")

    def test_repr(self):
        assert repr(self.vocab).startswith("Vocabulary with namespaces:")
