"""
Wait time estimation.
"""


def estimate_wait(queue_position: int, avg_service_minutes: float) -> float:
    """Estimated minutes until service for the given place in line.

    This is a linear approximation (place times the clinic's average service
    time), not a prediction: it ignores priority jumps, no-shows and the
    spread of real service times. Callers validate that both inputs are
    positive.
    """
    return queue_position * avg_service_minutes
