import logging

from .database import get_db_connection


class SQLiteHandler(logging.Handler):
    """
    A logging handler that writes records into the ``logs`` table.

    Records emitted before ``init_db`` has created the table are reported
    through ``handleError`` and dropped.
    """

    def emit(self, record):
        try:
            conn = get_db_connection()
            with conn:
                conn.execute(
                    "INSERT INTO logs (level, message) VALUES (?, ?)",
                    (record.levelname, self.format(record)),
                )
            conn.close()
        except Exception:
            self.handleError(record)
