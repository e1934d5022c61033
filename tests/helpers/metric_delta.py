"""
Helpers for validating metric value changes during tests.
"""

from contextlib import contextmanager


@contextmanager
def metric_delta(metric, expected_delta=1):
    """
    Context manager to validate metric value changes.

    Usage:
        with metric_delta(METRICS["admissions_total"]):
            # Code that should increment counter by 1
            pass
    """
    if hasattr(metric, "_value"):
        initial_value = metric._value.get()
    else:
        raise ValueError(f"Metric {metric} doesn't have a _value attribute")

    yield

    final_value = metric._value.get()
    actual_delta = final_value - initial_value

    if actual_delta != expected_delta:
        raise AssertionError(
            f"Expected metric to change by {expected_delta}, "
            f"but it changed by {actual_delta} "
            f"(from {initial_value} to {final_value})"
        )


def get_histogram_count(histogram):
    """Get the current observation count for a histogram."""
    for sample in list(histogram.collect())[0].samples:
        if sample.name.endswith("_count"):
            return sample.value
    return 0.0


@contextmanager
def histogram_observes(histogram, min_observations=1):
    """Context manager to validate histogram observations."""
    initial_count = get_histogram_count(histogram)

    yield

    actual_observations = get_histogram_count(histogram) - initial_count
    if actual_observations < min_observations:
        raise AssertionError(
            f"Expected at least {min_observations} histogram observations, but got {actual_observations}"
        )
