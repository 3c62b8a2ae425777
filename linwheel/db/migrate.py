import logging
from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

logger = logging.getLogger(__name__)

# Columns added after the first release. create_all() never alters an
# existing table, so older SQLite files get them here.
ADDED_COLUMNS = [
    ("linkedin_posts", "auto_publish", "BOOLEAN NOT NULL DEFAULT 1"),
    ("linkedin_posts", "is_manual_draft", "BOOLEAN NOT NULL DEFAULT 0"),
    ("linkedin_posts", "user_id", "VARCHAR(64)"),
    ("articles", "auto_publish", "BOOLEAN NOT NULL DEFAULT 1"),
    ("article_image_intents", "include_in_post", "BOOLEAN NOT NULL DEFAULT 1"),
    ("article_carousel_intents", "offset_days", "INTEGER"),
    ("article_carousel_intents", "publish_error", "TEXT"),
    ("profiles", "image_generation_count", "INTEGER NOT NULL DEFAULT 0"),
]

def column_exists(conn: Connection, table: str, column: str) -> bool:
    res = conn.execute(text(f"PRAGMA table_info({table})"))
    return column in [row[1] for row in res.fetchall()]

def migrate(engine: Engine) -> None:
    if engine.dialect.name != "sqlite":
        return
    with engine.begin() as conn:
        for table, column, ddl in ADDED_COLUMNS:
            if not column_exists(conn, table, column):
                logger.info("adding column %s.%s", table, column)
                conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}"))
