import argparse
import sys
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError

from app import models  # noqa: F401  registers the tables on Base.metadata
from app.config import settings
from app.db import Base


def check_database(database_url: str, create_schema: bool = False) -> bool:
    print(f"DATABASE_URL={database_url}")
    engine = create_engine(database_url, pool_pre_ping=True)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("DB connection OK")
        if create_schema:
            Base.metadata.create_all(bind=engine)
            print(f"Schema ready: {', '.join(sorted(Base.metadata.tables))}")
        return True
    except SQLAlchemyError as exc:
        print("DB connection FAILED")
        print(exc)
        return False
    finally:
        engine.dispose()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Check the order hub database connection.")
    parser.add_argument("--database-url", default=settings.database_url)
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="create any missing tables after the connection check",
    )
    args = parser.parse_args(argv)
    return 0 if check_database(args.database_url, args.create_schema) else 1


if __name__ == "__main__":
    sys.exit(main())
