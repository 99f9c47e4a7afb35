from overrides import overrides

from shiftreduce.training.metrics.metric import Metric


@Metric.register("average")
class Average(Metric):
    """
    This `Metric` breaks with the typical `Metric` API and just stores values that were
    computed in some fashion outside of a `Metric`.  The trainer uses it for the mean
    objective value over an epoch.
    """

    def __init__(self) -> None:
        self._total_value = 0.0
        self._count = 0

    @overrides
    def __call__(self, value: float) -> None:
        """
        # Parameters

        value : `float`
            The value to average.
        """
        self._count += 1
        self._total_value += float(value)

    @overrides
    def get_metric(self, reset: bool = False) -> float:
        """
        # Returns

        The average of all values that were passed to `__call__`.
        """
        average_value = self._total_value / self._count if self._count > 0 else 0.0
        if reset:
            self.reset()
        return float(average_value)

    @overrides
    def reset(self) -> None:
        self._total_value = 0.0
        self._count = 0
