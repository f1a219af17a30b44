"""HTTP transport for the task engine."""
