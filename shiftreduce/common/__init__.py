from shiftreduce.common.logging import ShiftReduceLogger
from shiftreduce.common.from_params import FromParams
from shiftreduce.common.params import Params
from shiftreduce.common.registrable import Registrable
from shiftreduce.common.tqdm import Tqdm
