"""Source article fetching."""
