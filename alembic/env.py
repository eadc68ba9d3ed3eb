"""
Alembic environment for the link dashboard (Flask-SQLAlchemy metadata)

Run from the repository root:
    alembic -c alembic.ini upgrade head
"""
from logging.config import fileConfig
import sys
from pathlib import Path

from alembic import context

# Repository root on the path so server/models import
sys.path.insert(0, str(Path(__file__).parent.parent))

from server import app, db
import models  # noqa: F401  (registers every model on db.metadata)

config = context.config

# The app config is the single source of the database URL
config.set_main_option('sqlalchemy.url', app.config['SQLALCHEMY_DATABASE_URI'])

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = db.metadata


def _is_sqlite(url):
    return url.startswith('sqlite')


def run_migrations_offline() -> None:
    """Emit SQL to stdout without a database connection."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        render_as_batch=_is_sqlite(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Migrate through the Flask app's engine (same pool settings as the server)."""
    with app.app_context():
        connectable = db.engine

        with connectable.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                compare_type=True,
                # SQLite cannot ALTER most constraints in place
                render_as_batch=connection.dialect.name == 'sqlite',
            )

            with context.begin_transaction():
                context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
