"""Process-table access and process-tree escalation."""
