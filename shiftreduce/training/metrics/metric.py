from typing import Dict, Union

from shiftreduce.common.registrable import Registrable


class Metric(Registrable):
    """
    A very general abstract class representing a metric which can be
    accumulated.
    """

    def __call__(self, *args, **kwargs) -> None:
        raise NotImplementedError

    def get_metric(self, reset: bool = False) -> Union[float, Dict[str, float]]:
        """
        Compute and return the metric. Optionally also call `self.reset`.
        """
        raise NotImplementedError

    def reset(self) -> None:
        """
        Reset any accumulators or internal state.
        """
        raise NotImplementedError
