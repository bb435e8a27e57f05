"""Read-only leaderboard over the points ledger."""
