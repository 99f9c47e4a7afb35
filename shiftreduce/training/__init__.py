from shiftreduce.training.metrics import Average, EvalbBracketingScorer, EvalbScorer, Metric
from shiftreduce.training.margin_trainer import MarginOutput, MarginTrainer
