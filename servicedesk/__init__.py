"""Service desk API: ticket lifecycle, triage and SLA tracking."""
