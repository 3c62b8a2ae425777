from sqlalchemy import create_engine, inspect, text

from linwheel.db.base import Base
from linwheel.db.migrate import migrate


def test_migrate_adds_missing_columns_to_old_tables():
    engine = create_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    with engine.begin() as conn:
        conn.execute(text("DROP TABLE article_image_intents"))
        conn.execute(text(
            "CREATE TABLE article_image_intents (id VARCHAR(36) PRIMARY KEY, article_id VARCHAR(36), prompt TEXT)"
        ))

    migrate(engine)
    migrate(engine)

    columns = {c["name"] for c in inspect(engine).get_columns("article_image_intents")}
    assert "include_in_post" in columns
