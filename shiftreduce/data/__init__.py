from shiftreduce.data.trees import binarize, check_binarized, is_preterminal
from shiftreduce.data.vocabulary import EPSILON, FINAL, IDLE, Vocabulary
