"""HTTP surface for the progression engine."""
