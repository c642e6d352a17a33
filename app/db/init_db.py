import psycopg2
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT
from sqlalchemy.engine import make_url
from app.core.config import settings
import logging

logger = logging.getLogger(__name__)

def create_database():
    """Create the Postgres database if it doesn't exist. No-op for other backends."""
    url = make_url(settings.DATABASE_URL)
    if not url.drivername.startswith("postgresql"):
        logger.info(f"Skipping database creation for backend '{url.drivername}'.")
        return

    try:
        # Connect to default 'postgres' database to check/create target DB
        con = psycopg2.connect(
            user=url.username,
            password=url.password,
            host=url.host,
            port=url.port or 5432,
            dbname="postgres"
        )
        con.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)
        cur = con.cursor()

        cur.execute("SELECT 1 FROM pg_catalog.pg_database WHERE datname = %s", (url.database,))
        exists = cur.fetchone()

        if not exists:
            logger.info(f"Database {url.database} does not exist. Creating...")
            cur.execute(f'CREATE DATABASE "{url.database}"')
            logger.info(f"Database {url.database} created successfully.")
        else:
            logger.info(f"Database {url.database} already exists.")

        cur.close()
        con.close()
    except psycopg2.Error as e:
        # The server may only grant access to the target DB; create_all will tell
        logger.error(f"Error creating database: {e}")

if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL)
    create_database()
