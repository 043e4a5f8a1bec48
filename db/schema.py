# SQL schema for Kioku database

SCHEMA_VERSION = 2

SETTINGS_KEY = "srsSettings"

SCHEMA_SQL = """
-- Cards (with SRS fields); the question is the identity
CREATE TABLE IF NOT EXISTS cards (
    question TEXT PRIMARY KEY,
    answers TEXT NOT NULL,
    repetitions INTEGER NOT NULL DEFAULT 0,
    efactor REAL NOT NULL DEFAULT 2.5,
    interval_minutes INTEGER NOT NULL DEFAULT 0,
    next_review_date TEXT NOT NULL,
    is_suspended INTEGER NOT NULL DEFAULT 0,
    is_starred INTEGER NOT NULL DEFAULT 0,
    total_mistakes INTEGER NOT NULL DEFAULT 0
);

-- Key/value settings (SRS settings live under 'srsSettings')
CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT
);

-- Review log
CREATE TABLE IF NOT EXISTS review_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    question TEXT NOT NULL,
    is_correct INTEGER NOT NULL CHECK(is_correct IN (0, 1)),
    review_date TEXT NOT NULL,
    interval_at_review INTEGER NOT NULL DEFAULT 0,
    efactor_at_review REAL NOT NULL DEFAULT 2.5,
    FOREIGN KEY (question) REFERENCES cards (question)
);
"""

# Indexes for performance
INDEXES_SQL = """
CREATE INDEX IF NOT EXISTS idx_cards_next_review ON cards (next_review_date);
CREATE INDEX IF NOT EXISTS idx_cards_suspended ON cards (is_suspended);
CREATE INDEX IF NOT EXISTS idx_review_history_question ON review_history (question);
CREATE INDEX IF NOT EXISTS idx_review_history_date ON review_history (review_date);
"""

# Columns a snapshot must carry to be accepted as a Kioku database
REQUIRED_CARD_COLUMNS = {"question", "answers"}
