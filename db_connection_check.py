from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

from honeypos.config import settings
from honeypos.db import create_db_engine


def main() -> None:
    database_url = settings.database_url
    print(f"DATABASE_URL={database_url}")
    engine = create_db_engine(database_url)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            tables = inspect(conn).get_table_names()
        print("DB connection OK")
        print(f"tables: {len(tables)}")
    except SQLAlchemyError as exc:
        print("DB connection FAILED")
        print(exc)


if __name__ == "__main__":
    main()
