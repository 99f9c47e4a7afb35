from shiftreduce.nn.activations import Activation
from shiftreduce.nn.semiring import LinearSemiring, LogSemiring, Semiring
