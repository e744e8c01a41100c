import os
import sqlite3

from .config import settings


def get_db_path() -> str:
    return os.path.join(settings.DB_DIR, settings.DB_FILE)


def get_db_connection():
    """Establishes a connection to the SQLite database."""
    conn = sqlite3.connect(get_db_path())
    conn.row_factory = sqlite3.Row
    return conn


def create_log_table(conn):
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
            level TEXT,
            message TEXT
        );
    """
    )


def create_content_tables(conn):
    """Creates the users, assignments and progress tables."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            username TEXT NOT NULL,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            last_login DATETIME
        );
    """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS assignments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            level TEXT NOT NULL,
            question_text TEXT,
            image_url TEXT,
            correct_answer TEXT,
            incorrect_answers TEXT,
            explanation TEXT
        );
    """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_assignments_level ON assignments (level);"
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS user_progress (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            assignment_id TEXT NOT NULL,
            completed INTEGER NOT NULL DEFAULT 0,
            completed_correctly INTEGER NOT NULL DEFAULT 0,
            attempts INTEGER NOT NULL DEFAULT 0,
            updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (user_id, assignment_id)
        );
    """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS level_completions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            level TEXT NOT NULL,
            completed INTEGER NOT NULL,
            score INTEGER NOT NULL,
            mistakes INTEGER NOT NULL,
            stars INTEGER NOT NULL,
            percentage INTEGER NOT NULL,
            total_questions INTEGER NOT NULL,
            total_available INTEGER NOT NULL DEFAULT 0,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP
        );
    """
    )


def init_db():
    """Initializes the database and creates necessary tables."""
    os.makedirs(settings.DB_DIR, exist_ok=True)
    conn = get_db_connection()
    with conn:
        create_log_table(conn)
        create_content_tables(conn)
    conn.close()
