"""Console entry points for the expense store."""
