"""Domain logic: day window, occurrence rules and timeline analysis."""
