def overlaps(start_a, end_a, start_b, end_b) -> bool:
    """
    Strict overlap of two half-open intervals on the same day.
    Intervals that only touch (end_a == start_b) do not overlap.
    """
    return start_a < end_b and start_b < end_a
