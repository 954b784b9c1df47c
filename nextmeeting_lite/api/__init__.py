"""HTTP boundary for nextmeeting_lite."""
