"""HTTP interface for the expense store."""
