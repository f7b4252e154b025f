"""Pure exam constants: scoring scheme, judge tolerance, statuses. No UI."""
# Scoring: correct +4, incorrect -1, unattempted 0

CORRECT_SCORE = 4
INCORRECT_SCORE = -1
UNATTEMPTED_SCORE = 0
NUMERICAL_TOLERANCE = 0.01

SINGLE_CHOICE = "SINGLE_CHOICE"
NUMERICAL = "NUMERICAL"

ATTEMPT_STARTED = "STARTED"
ATTEMPT_COMPLETED = "COMPLETED"

UNCATEGORIZED = "UNCATEGORIZED"
