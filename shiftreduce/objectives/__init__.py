"""
Objectives that compare a candidate agenda with an oracle agenda and attribute loss to states.
"""
from shiftreduce.objectives.margin_objective import MarginObjective
from shiftreduce.objectives.margin_max import MarginMax
from shiftreduce.objectives.margin_evalb import MarginEvalb
