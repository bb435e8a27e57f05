"""Database models for the points ledger.

A single counter per user. Every award is one increment statement, so
concurrent quiz passes, session closes and achievement rewards for the same
user can never lose an update.
"""

USER_POINTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.user_points (
    bucket INT,
    user_id UUID,
    points COUNTER,
    PRIMARY KEY ((bucket), user_id)
)
"""

POINTS_TABLES_CQL = [
    USER_POINTS_TABLE_CQL,
]

# All totals share one partition so the leaderboard can read them in a
# single query.
POINTS_BUCKET = 0

# Point rules
QUIZ_PASS_POINTS = 20
PERFECT_SCORE_BONUS = 10
SECONDS_PER_STUDY_POINT = 60
