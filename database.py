import sqlite3
import os
import datetime
from typing import Dict, List, Optional, Any

from shared.models import LevelResult


DEFAULT_DB_FILE = "whirljig.db"


class ProgressDatabase:
    """
    Class to handle SQLite database operations for storing and retrieving
    level progress: completed levels, high scores, total score and the
    unlocked-level frontier.
    """

    def __init__(self, db_file=DEFAULT_DB_FILE):
        """
        Initialize the database connection.

        Args:
            db_file: Path to the SQLite database file (":memory:" for a throwaway store)
        """
        self.db_file = db_file
        self.conn = None
        self.cursor = None
        self.initialize_db()

    def initialize_db(self) -> None:
        """Create the database and tables if they don't exist."""
        try:
            # Create database directory if it doesn't exist
            db_dir = os.path.dirname(self.db_file)
            if db_dir and not os.path.exists(db_dir):
                os.makedirs(db_dir)

            # Connect to database (creates it if it doesn't exist)
            self.conn = sqlite3.connect(self.db_file)
            self.cursor = self.conn.cursor()

            # One row per completion, kept as history
            self.cursor.execute('''
                CREATE TABLE IF NOT EXISTS level_results (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    level_id INTEGER NOT NULL,
                    score INTEGER NOT NULL,
                    completed_at TIMESTAMP NOT NULL
                )
            ''')

            self.cursor.execute('''
                CREATE TABLE IF NOT EXISTS level_progress (
                    level_id INTEGER PRIMARY KEY,
                    high_score INTEGER NOT NULL,
                    times_completed INTEGER NOT NULL
                )
            ''')

            # Single-row table holding the player-wide counters
            self.cursor.execute('''
                CREATE TABLE IF NOT EXISTS progress (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    current_level INTEGER NOT NULL,
                    total_score INTEGER NOT NULL
                )
            ''')
            self.cursor.execute('''
                INSERT OR IGNORE INTO progress (id, current_level, total_score)
                VALUES (1, 1, 0)
            ''')

            self.conn.commit()
            print("Database initialized successfully.")
        except sqlite3.Error as e:
            print(f"Database initialization error: {e}")

    def close(self) -> None:
        """Close the database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            self.cursor = None

    def complete_level(self, level_id: int, score: int) -> int:
        """
        Record a completed level: merge the high score, add to the total
        and keep the result in the history.

        Args:
            level_id: Id of the completed level
            score: Final score of the attempt

        Returns:
            ID of the inserted result record, or -1 on error
        """
        try:
            if not self.conn:
                self.initialize_db()

            self.cursor.execute('''
                INSERT INTO level_results (level_id, score, completed_at)
                VALUES (?, ?, ?)
            ''', (level_id, score, datetime.datetime.now().isoformat()))
            result_id = self.cursor.lastrowid

            self.cursor.execute('''
                INSERT INTO level_progress (level_id, high_score, times_completed)
                VALUES (?, ?, 1)
                ON CONFLICT(level_id) DO UPDATE SET
                    high_score = MAX(high_score, excluded.high_score),
                    times_completed = times_completed + 1
            ''', (level_id, score))

            self.cursor.execute('''
                UPDATE progress SET total_score = total_score + ? WHERE id = 1
            ''', (score,))

            self.conn.commit()
            return result_id
        except sqlite3.Error as e:
            print(f"Error saving level result: {e}")
            return -1

    def unlock_next_level(self) -> int:
        """
        Advance the unlocked-level frontier by one.

        Returns:
            The new current level, or -1 on error
        """
        try:
            if not self.conn:
                self.initialize_db()

            self.cursor.execute('''
                UPDATE progress SET current_level = current_level + 1 WHERE id = 1
            ''')
            self.conn.commit()
            return self.get_current_level()
        except sqlite3.Error as e:
            print(f"Error unlocking next level: {e}")
            return -1

    def get_current_level(self) -> int:
        """Get the highest unlocked level id (1 for a fresh store)."""
        try:
            if not self.conn:
                self.initialize_db()

            self.cursor.execute("SELECT current_level FROM progress WHERE id = 1")
            row = self.cursor.fetchone()
            return row[0] if row else 1
        except sqlite3.Error as e:
            print(f"Error retrieving current level: {e}")
            return 1

    def is_level_unlocked(self, level_id: int) -> bool:
        return level_id <= self.get_current_level()

    def get_total_score(self) -> int:
        """Get the sum of the scores of every completion."""
        try:
            if not self.conn:
                self.initialize_db()

            self.cursor.execute("SELECT total_score FROM progress WHERE id = 1")
            row = self.cursor.fetchone()
            return row[0] if row else 0
        except sqlite3.Error as e:
            print(f"Error retrieving total score: {e}")
            return 0

    def get_high_score(self, level_id: int) -> Optional[int]:
        """
        Get the best score recorded for a level.

        Args:
            level_id: Id of the level

        Returns:
            Best score or None if the level was never completed
        """
        try:
            if not self.conn:
                self.initialize_db()

            self.cursor.execute('''
                SELECT high_score FROM level_progress WHERE level_id = ?
            ''', (level_id,))
            row = self.cursor.fetchone()
            return row[0] if row else None
        except sqlite3.Error as e:
            print(f"Error retrieving high score: {e}")
            return None

    def get_high_scores(self) -> Dict[int, int]:
        """Get the best score of every completed level, keyed by level id."""
        try:
            if not self.conn:
                self.initialize_db()

            self.cursor.execute('''
                SELECT level_id, high_score FROM level_progress ORDER BY level_id
            ''')
            return {level_id: high_score for level_id, high_score in self.cursor.fetchall()}
        except sqlite3.Error as e:
            print(f"Error retrieving high scores: {e}")
            return {}

    def get_completed_levels(self) -> List[int]:
        try:
            if not self.conn:
                self.initialize_db()

            self.cursor.execute("SELECT level_id FROM level_progress ORDER BY level_id")
            return [row[0] for row in self.cursor.fetchall()]
        except sqlite3.Error as e:
            print(f"Error retrieving completed levels: {e}")
            return []

    def get_recent_results(self, limit: int = 10) -> List[LevelResult]:
        """
        Get the most recent completions.

        Args:
            limit: Maximum number of records to return

        Returns:
            List of LevelResult, newest first
        """
        try:
            if not self.conn:
                self.initialize_db()

            self.cursor.execute('''
                SELECT id, level_id, score, completed_at
                FROM level_results
                ORDER BY id DESC
                LIMIT ?
            ''', (limit,))

            columns = [col[0] for col in self.cursor.description]
            results = []
            for row in self.cursor.fetchall():
                data: Dict[str, Any] = dict(zip(columns, row))
                data['completed_at'] = datetime.datetime.fromisoformat(
                    data['completed_at']).timestamp()
                results.append(LevelResult.from_dict(data))
            return results
        except sqlite3.Error as e:
            print(f"Error retrieving recent results: {e}")
            return []

    def reset_progress(self) -> bool:
        """Wipe every result and return to the initial progress state."""
        try:
            if not self.conn:
                self.initialize_db()

            self.cursor.execute("DELETE FROM level_results")
            self.cursor.execute("DELETE FROM level_progress")
            self.cursor.execute('''
                UPDATE progress SET current_level = 1, total_score = 0 WHERE id = 1
            ''')
            self.conn.commit()
            return True
        except sqlite3.Error as e:
            print(f"Error resetting progress: {e}")
            return False


# Created on first use so importing the module never touches the disk
_db: Optional[ProgressDatabase] = None

def get_database(db_file=DEFAULT_DB_FILE) -> ProgressDatabase:
    """Get the shared database instance."""
    global _db
    if _db is None:
        _db = ProgressDatabase(db_file)
    return _db
