from shiftreduce.parameters.parameter_store import BLOCK_ORDER, ParameterStore, accumulate
