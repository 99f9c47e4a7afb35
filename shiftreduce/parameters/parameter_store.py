"""
The dense parameters of the action-scoring network, and the accumulator that gradient deltas
are summed into.  Both roles share one class: a training worker keeps a zero-initialized
`ParameterStore` as its private delta and the deltas are merged with `+=`.
"""
import logging
import struct
from collections import OrderedDict
from os import PathLike
from typing import Dict, Iterable, Iterator, Tuple, Union

import numpy
import torch

from shiftreduce.common import FromParams
from shiftreduce.common.checks import (
    ConfigurationError,
    DeserializationError,
    check_dimensions_match,
)
from shiftreduce.data.vocabulary import Vocabulary

logger = logging.getLogger(__name__)

# The order of the blocks on the wire.  Changing it breaks every serialized store.  Reduce has a
# single Wre/Bre pair: the left- and right-headed reduce blocks are folded into one.
BLOCK_ORDER = (
    "terminal",
    "Wc",
    "Wsh",
    "Bsh",
    "Wre",
    "Bre",
    "Wu",
    "Bu",
    "Wf",
    "Bf",
    "Wi",
    "Bi",
    "Ba",
    "Wqu",
    "Bqu",
    "Bqe",
)

_HEADER = struct.Struct("<qqq")
_SHAPE = struct.Struct("<qq")
_ELEMENT = numpy.dtype("<f8")


def block_shapes(
    hidden: int, embedding: int, num_terminals: int, num_categories: int, num_classifications: int
) -> Dict[str, Tuple[int, int]]:
    """
    Returns the shape of every block, in wire order.
    """
    rows = hidden * num_categories
    return OrderedDict(
        [
            ("terminal", (embedding, num_terminals)),
            ("Wc", (num_classifications, hidden)),
            ("Wsh", (rows, hidden + embedding + hidden)),
            ("Bsh", (rows, 1)),
            ("Wre", (rows, hidden + hidden + hidden)),
            ("Bre", (rows, 1)),
            ("Wu", (rows, hidden + hidden)),
            ("Bu", (rows, 1)),
            ("Wf", (hidden, hidden)),
            ("Bf", (hidden, 1)),
            ("Wi", (hidden, hidden)),
            ("Bi", (hidden, 1)),
            ("Ba", (hidden, 1)),
            ("Wqu", (hidden, hidden + embedding)),
            ("Bqu", (hidden, 1)),
            ("Bqe", (hidden, 1)),
        ]
    )


class ParameterStore(FromParams):
    """
    A named set of dense `float64` blocks plus an accumulation `count`.

    The blocks are: the terminal embedding table `terminal`, the classification rows `Wc`, one
    weight/bias pair per action (`Wsh`/`Bsh` shift, `Wre`/`Bre` reduce, `Wu`/`Bu` unary,
    `Wf`/`Bf` final, `Wi`/`Bi` idle), the axiom bias `Ba`, and the input queue recurrence
    `Wqu`/`Bqu`/`Bqe`.  The shift, reduce and unary blocks stack one `hidden`-row sub-block per
    label category; `offset_category` and `offset_classification` find a label's rows.

    # Parameters

    hidden : `int`, optional (default = `0`)
        Size of the hidden layer of every state.
    embedding : `int`, optional (default = `0`)
        Size of the terminal embeddings.
    vocab : `Vocabulary`, optional (default = `None`)
        Sizes the terminal table and the label-indexed blocks, and backs the offset lookups.
        Without one, a single terminal, category and classification row is allocated.
    """

    def __init__(self, hidden: int = 0, embedding: int = 0, vocab: Vocabulary = None) -> None:
        self.vocab = vocab
        if vocab is not None:
            self._sizes = (vocab.num_terminals, vocab.num_categories, vocab.num_classifications)
        else:
            self._sizes = (1, 1, 1)
        self.initialize(hidden, embedding)

    def initialize(self, hidden: int, embedding: int) -> None:
        """
        Sizes every block for `(hidden, embedding)`, zeroes it and resets `count`.
        """
        if hidden < 0 or embedding < 0:
            raise ConfigurationError(f"invalid dimensions: hidden={hidden}, embedding={embedding}")
        self.hidden = hidden
        self.embedding = embedding
        self.count = 0
        for name, shape in block_shapes(hidden, embedding, *self._sizes).items():
            setattr(self, name, torch.zeros(shape, dtype=torch.float64))

    def parameters(self) -> Iterator[Tuple[str, torch.Tensor]]:
        """
        Iterates over `(name, block)` in wire order.
        """
        for name in BLOCK_ORDER:
            yield name, getattr(self, name)

    def offset_category(self, label: str) -> int:
        return self._require_vocab().category_index(label) * self.hidden

    def offset_classification(self, label: str) -> int:
        return self._require_vocab().classification_index(label)

    def terminal_index(self, word: str) -> int:
        return self._require_vocab().get_terminal_index(word)

    def _require_vocab(self) -> Vocabulary:
        if self.vocab is None:
            raise ConfigurationError("label lookups need a ParameterStore built with a vocabulary")
        return self.vocab

    def zeros_like(self) -> "ParameterStore":
        """
        A zero-initialized store of the same shape; the usual per-worker delta.
        """
        return ParameterStore(self.hidden, self.embedding, self.vocab)

    def clone(self) -> "ParameterStore":
        store = self.zeros_like()
        for name, block in self.parameters():
            setattr(store, name, block.clone())
        store.count = self.count
        return store

    def randomize(self, scale: float = 0.1, seed: int = None) -> None:
        """
        Fills every block uniformly from `[-scale, scale)`.  `count` is left alone.
        """
        generator = torch.Generator()
        if seed is not None:
            generator.manual_seed(seed)
        for _, block in self.parameters():
            block.uniform_(-scale, scale, generator=generator)

    def _check_compatible(self, other: "ParameterStore") -> None:
        check_dimensions_match(self.hidden, other.hidden, "hidden", "other hidden")
        check_dimensions_match(self.embedding, other.embedding, "embedding", "other embedding")
        for name, block in self.parameters():
            check_dimensions_match(
                tuple(block.shape),
                tuple(getattr(other, name).shape),
                f"{name} shape",
                f"other {name} shape",
            )

    def combine(self, other: "ParameterStore", sign: int = 1) -> "ParameterStore":
        """
        Adds (`sign=1`) or subtracts (`sign=-1`) every block of `other` and its `count`, in
        place.  Shapes must agree exactly; nothing is broadcast or truncated.
        """
        if sign not in (1, -1):
            raise ValueError(f"sign must be 1 or -1, got {sign}")
        self._check_compatible(other)
        for name, block in self.parameters():
            block.add_(getattr(other, name), alpha=sign)
        self.count += sign * other.count
        return self

    def __iadd__(self, other: "ParameterStore") -> "ParameterStore":
        return self.combine(other, 1)

    def __isub__(self, other: "ParameterStore") -> "ParameterStore":
        return self.combine(other, -1)

    def _header(self) -> Tuple[int, int, int]:
        return self.hidden, self.embedding, self.count

    def __eq__(self, other):
        if not isinstance(other, ParameterStore):
            return NotImplemented
        if self._header() != other._header():
            return False
        return all(
            block.shape == getattr(other, name).shape and torch.equal(block, getattr(other, name))
            for name, block in self.parameters()
        )

    def allclose(self, other: "ParameterStore", rtol: float = 1e-05, atol: float = 1e-08) -> bool:
        if self._header() != other._header():
            return False
        return all(
            block.shape == getattr(other, name).shape
            and torch.allclose(block, getattr(other, name), rtol=rtol, atol=atol)
            for name, block in self.parameters()
        )

    def serialize(self) -> bytes:
        """
        The header `(hidden, embedding, count)` as little-endian int64, then every block in
        `BLOCK_ORDER` as `(rows, cols)` int64 followed by its float64 values in row-major order.
        """
        chunks = [_HEADER.pack(self.hidden, self.embedding, self.count)]
        for _, block in self.parameters():
            rows, cols = block.shape
            chunks.append(_SHAPE.pack(rows, cols))
            chunks.append(block.detach().cpu().numpy().astype(_ELEMENT).tobytes(order="C"))
        return b"".join(chunks)

    def deserialize(self, data: bytes) -> None:
        """
        Replaces this store's contents with the serialized `data`.  Everything is parsed and
        validated before any attribute is assigned, so a `DeserializationError` leaves the store
        as it was.
        """
        buffer = memoryview(data)
        if len(buffer) < _HEADER.size:
            raise DeserializationError("truncated parameter header")
        hidden, embedding, count = _HEADER.unpack_from(buffer, 0)
        if hidden < 0 or embedding < 0:
            raise DeserializationError(f"invalid header: hidden={hidden}, embedding={embedding}")
        offset = _HEADER.size

        blocks: Dict[str, torch.Tensor] = OrderedDict()
        for name in BLOCK_ORDER:
            if len(buffer) - offset < _SHAPE.size:
                raise DeserializationError(f"truncated shape header of block {name}")
            rows, cols = _SHAPE.unpack_from(buffer, offset)
            offset += _SHAPE.size
            if rows < 0 or cols < 0:
                raise DeserializationError(f"negative shape ({rows}, {cols}) of block {name}")
            num_bytes = rows * cols * _ELEMENT.itemsize
            if len(buffer) - offset < num_bytes:
                raise DeserializationError(f"truncated values of block {name}")
            values = numpy.frombuffer(buffer, dtype=_ELEMENT, count=rows * cols, offset=offset)
            blocks[name] = torch.from_numpy(values.astype(numpy.float64).reshape(rows, cols))
            offset += num_bytes
        if offset != len(buffer):
            raise DeserializationError(
                f"{len(buffer) - offset} trailing bytes after the last block"
            )

        num_terminals = blocks["terminal"].shape[1]
        num_classifications = blocks["Wc"].shape[0]
        if hidden > 0:
            num_categories = blocks["Bsh"].shape[0] // hidden
        else:
            num_categories = self._sizes[1]
        sizes = (num_terminals, num_categories, num_classifications)
        if self.vocab is not None and sizes != self._sizes:
            raise DeserializationError(
                f"serialized label sizes {sizes} do not match the vocabulary sizes {self._sizes}"
            )
        expected = block_shapes(hidden, embedding, *sizes)
        for name, block in blocks.items():
            if tuple(block.shape) != expected[name]:
                raise DeserializationError(
                    f"block {name} has shape {tuple(block.shape)}, expected {expected[name]} "
                    f"for hidden={hidden}, embedding={embedding}"
                )

        self.hidden = hidden
        self.embedding = embedding
        self.count = count
        self._sizes = sizes
        for name, block in blocks.items():
            setattr(self, name, block)

    @classmethod
    def from_bytes(cls, data: bytes, vocab: Vocabulary = None) -> "ParameterStore":
        store = cls(vocab=vocab)
        store.deserialize(data)
        return store

    def to_file(self, path: Union[str, PathLike]) -> None:
        data = self.serialize()
        with open(path, "wb") as parameter_file:
            parameter_file.write(data)
        logger.info(
            "Wrote parameters (hidden=%d, embedding=%d, count=%d, %d bytes) to %s",
            self.hidden,
            self.embedding,
            self.count,
            len(data),
            path,
        )

    @classmethod
    def from_file(cls, path: Union[str, PathLike], vocab: Vocabulary = None) -> "ParameterStore":
        logger.info("Reading parameters from %s", path)
        with open(path, "rb") as parameter_file:
            return cls.from_bytes(parameter_file.read(), vocab)

    def __repr__(self) -> str:
        return (
            f"ParameterStore(hidden={self.hidden}, embedding={self.embedding}, count={self.count})"
        )


def accumulate(stores: Iterable[ParameterStore]) -> ParameterStore:
    """
    Sums per-worker deltas into a new store.  The order does not matter, since `+=` is
    elementwise addition.
    """
    total = None
    for store in stores:
        if total is None:
            total = store.clone()
        else:
            total += store
    if total is None:
        raise ValueError("accumulate needs at least one store")
    return total
