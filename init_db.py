"""Print the Supabase schema for the mock test tables."""
import os

from dotenv import load_dotenv

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")

# SQL schema
SCHEMA_SQL = """
-- Tests on offer
CREATE TABLE IF NOT EXISTS "Tests" (
    test_id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name TEXT NOT NULL,
    duration_minutes INT NOT NULL CHECK (duration_minutes > 0),
    total_questions INT NOT NULL DEFAULT 0,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- Question bank
CREATE TABLE IF NOT EXISTS "Questions" (
    question_id UUID PRIMARY KEY,
    question_type VARCHAR(20) NOT NULL CHECK (question_type IN ('SINGLE_CHOICE', 'NUMERICAL')),
    subject VARCHAR(50),
    question_text TEXT NOT NULL,
    options JSONB,
    correct_answer JSONB NOT NULL,
    solution_text TEXT,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- Ordered membership of questions in a test
CREATE TABLE IF NOT EXISTS "Test_Questions_Link" (
    test_id UUID NOT NULL REFERENCES "Tests"(test_id) ON DELETE CASCADE,
    question_id UUID NOT NULL REFERENCES "Questions"(question_id) ON DELETE CASCADE,
    question_number INT NOT NULL CHECK (question_number >= 1),
    PRIMARY KEY (test_id, question_id),
    UNIQUE (test_id, question_number)
);

-- One user's timed pass through a test
CREATE TABLE IF NOT EXISTS "User_Test_Attempts" (
    attempt_id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL REFERENCES auth.users(id),
    test_id UUID NOT NULL REFERENCES "Tests"(test_id),
    status VARCHAR(20) NOT NULL DEFAULT 'STARTED' CHECK (status IN ('STARTED', 'COMPLETED')),
    start_time TIMESTAMPTZ DEFAULT NOW(),
    end_time TIMESTAMPTZ,
    final_score INT
);

-- Saved answers, one row per (attempt, question)
CREATE TABLE IF NOT EXISTS "User_Answer_Responses" (
    attempt_id UUID NOT NULL REFERENCES "User_Test_Attempts"(attempt_id) ON DELETE CASCADE,
    question_id UUID NOT NULL REFERENCES "Questions"(question_id),
    selected_answer JSONB,
    action VARCHAR(20) NOT NULL CHECK (action IN ('unanswered', 'answered', 'marked_for_review')),
    time_taken_sec INT,
    updated_at TIMESTAMPTZ DEFAULT NOW(),
    PRIMARY KEY (attempt_id, question_id)
);

-- Users only see their own attempts and answers
ALTER TABLE "User_Test_Attempts" ENABLE ROW LEVEL SECURITY;
ALTER TABLE "User_Answer_Responses" ENABLE ROW LEVEL SECURITY;
CREATE POLICY own_attempts ON "User_Test_Attempts" FOR ALL USING (auth.uid() = user_id);
CREATE POLICY own_answers ON "User_Answer_Responses" FOR ALL USING (
    attempt_id IN (SELECT attempt_id FROM "User_Test_Attempts" WHERE user_id = auth.uid())
);

CREATE INDEX IF NOT EXISTS idx_link_test_id ON "Test_Questions_Link"(test_id);
CREATE INDEX IF NOT EXISTS idx_attempts_user_id ON "User_Test_Attempts"(user_id);
"""


def statements(sql: str = SCHEMA_SQL):
    """Split the schema into individual statements."""
    return [s.strip() for s in sql.split(";") if s.strip()]


def main():
    print("Initializing Supabase schema...")
    print(f"URL: {SUPABASE_URL}")
    stmts = statements()
    for i, stmt in enumerate(stmts, 1):
        first_line = next((line for line in stmt.splitlines() if not line.startswith("--")), stmt)
        print(f"  {i}/{len(stmts)}  {first_line[:60]}...")
    print("\nNote: Supabase client cannot run DDL, run this SQL in the Supabase SQL Editor:")
    print(SCHEMA_SQL)


if __name__ == "__main__":
    main()
