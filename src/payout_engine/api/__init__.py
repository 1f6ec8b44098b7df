"""HTTP API for the payout engine."""
