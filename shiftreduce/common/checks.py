"""
Functions and exceptions for checking that
the parser, its parameters and its training inputs are consistent.
"""
import logging

import torch

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """
    The exception raised by any shiftreduce object when it's misconfigured
    (e.g. missing properties, invalid properties, unknown labels, mismatched shapes).
    """

    def __reduce__(self):
        return type(self), (self.message,)

    def __init__(self, message: str):
        super().__init__()
        self.message = message

    def __str__(self):
        return self.message


class AgendaMismatchError(RuntimeError):
    """
    Raised when a candidate agenda and an oracle agenda do not have the same number of steps,
    which means the two searches were not run over the same instance.
    """

    pass


class DegenerateInstanceError(RuntimeError):
    """
    Raised by an objective configured with `require_common_step=True` when the candidate and
    oracle agendas share no non-empty step beyond the axiom.
    """

    pass


class DeserializationError(ValueError):
    """
    Raised when serialized parameters are truncated, carry trailing bytes, or describe blocks
    whose shapes disagree with the header.
    """

    pass


def log_pytorch_version_info():
    logger.info("Pytorch version: %s", torch.__version__)


def check_dimensions_match(
    dimension_1, dimension_2, dim_1_name: str, dim_2_name: str
) -> None:
    if dimension_1 != dimension_2:
        raise ConfigurationError(
            f"{dim_1_name} must match {dim_2_name}, but got {dimension_1} "
            f"and {dimension_2} instead"
        )
