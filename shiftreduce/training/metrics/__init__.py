"""
A `~shiftreduce.training.metrics.metric.Metric` is some quantity or quantities
that can be accumulated during training or evaluation; for example,
the mean objective value or labeled bracket F1.
"""

from shiftreduce.training.metrics.average import Average
from shiftreduce.training.metrics.evalb_bracketing_scorer import (
    EvalbBracketingScorer,
    EvalbScorer,
)
from shiftreduce.training.metrics.metric import Metric
