"""Code used by more than one layer of supportdesk that carries no SLA rules."""
