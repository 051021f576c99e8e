"""Application stage workflow and needs-action triage for advisor caseloads."""

__version__ = "0.1.0"
