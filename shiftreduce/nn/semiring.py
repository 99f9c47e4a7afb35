"""
Probability arithmetic for the margin objectives.

The objectives normalize exponentiated derivation scores over a beam.  Exponentiating raw scores
directly overflows once scores grow, so all of that arithmetic goes through a `Semiring`: a
small interface of `zero`, `exp` (lift a raw score into the semiring), `add` and `ratio` (the
normalized value as a plain float).  The `"log"` semiring keeps weights as log values and adds
with log-sum-exp; the `"linear"` semiring is the naive version and exists mostly for testing.
"""
import math
from typing import Iterable

import numpy

from shiftreduce.common import Registrable


class Semiring(Registrable):
    """
    A `Semiring` is a strategy object; the objectives are written once against this interface
    and work with either weight representation.
    """

    default_implementation = "log"

    def zero(self) -> float:
        """The additive identity."""
        raise NotImplementedError

    def exp(self, score: float) -> float:
        """The weight of `math.exp(score)` in this semiring."""
        raise NotImplementedError

    def add(self, weight_1: float, weight_2: float) -> float:
        raise NotImplementedError

    def ratio(self, numerator: float, denominator: float) -> float:
        """
        Returns `numerator / denominator` converted back to an ordinary float.
        """
        raise NotImplementedError

    def sum(self, weights: Iterable[float]) -> float:
        total = self.zero()
        for weight in weights:
            total = self.add(total, weight)
        return total


@Semiring.register("log")
class LogSemiring(Semiring):
    def zero(self) -> float:
        return -math.inf

    def exp(self, score: float) -> float:
        return score

    def add(self, weight_1: float, weight_2: float) -> float:
        return float(numpy.logaddexp(weight_1, weight_2))

    def ratio(self, numerator: float, denominator: float) -> float:
        if denominator == -math.inf:
            raise ZeroDivisionError("ratio over a zero log weight")
        return math.exp(numerator - denominator)


@Semiring.register("linear")
class LinearSemiring(Semiring):
    def zero(self) -> float:
        return 0.0

    def exp(self, score: float) -> float:
        return math.exp(score)

    def add(self, weight_1: float, weight_2: float) -> float:
        return weight_1 + weight_2

    def ratio(self, numerator: float, denominator: float) -> float:
        return numerator / denominator
