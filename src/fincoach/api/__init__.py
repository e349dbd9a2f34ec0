"""HTTP API for FinCoach."""
