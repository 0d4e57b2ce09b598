import logging
from threading import Lock

from fastapi import HTTPException, status
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from scholarship_portal.core import config


logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'

_connect_args = {'check_same_thread': False} if config.DATABASE_URL.startswith('sqlite') else {}

engine = create_engine(config.DATABASE_URL, echo=config.DATABASE_ECHO, connect_args=_connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_scholarship_schema_checked = False
_application_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def database_unavailable(db: Session | None = None) -> HTTPException:
    """Log the active store error and build the 503 for it.

    Call from inside an ``except SQLAlchemyError`` block.
    """
    if db is not None:
        db.rollback()
    logger.exception('Database operation failed')
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def ensure_scholarship_schema(bind=None) -> None:
    """Bring an older scholarships table up to the running-sum rating layout."""
    global _scholarship_schema_checked

    if _scholarship_schema_checked:
        return

    bind = bind or engine

    with _schema_lock:
        if _scholarship_schema_checked:
            return

        inspector = inspect(bind)

        if 'scholarships' not in inspector.get_table_names():
            _scholarship_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('scholarships')}
        migration_steps = [
            ('rating', 'ALTER TABLE scholarships ADD COLUMN rating FLOAT DEFAULT 0'),
            ('review_count', 'ALTER TABLE scholarships ADD COLUMN review_count INTEGER DEFAULT 0'),
            ('rating_sum', 'ALTER TABLE scholarships ADD COLUMN rating_sum FLOAT DEFAULT 0'),
        ]

        with bind.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    logger.info('Adding scholarships.%s column', column_name)
                    connection.execute(text(statement))
            if 'rating_sum' not in existing_columns:
                connection.execute(
                    text(
                        'UPDATE scholarships SET rating_sum = COALESCE(rating, 0) * COALESCE(review_count, 0)'
                    )
                )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_scholarships_fee_posted ON scholarships(application_fees, post_date)')
            )

        _scholarship_schema_checked = True


def ensure_application_schema(bind=None) -> None:
    global _application_schema_checked

    if _application_schema_checked:
        return

    bind = bind or engine

    with _schema_lock:
        if _application_schema_checked:
            return

        inspector = inspect(bind)

        if 'applications' not in inspector.get_table_names():
            _application_schema_checked = True
            return

        with bind.begin() as connection:
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_applications_email_scholarship '
                    'ON applications(email, scholarship_id)'
                )
            )

        _application_schema_checked = True


def init_database(bind=None) -> None:
    bind = bind or engine

    # Models register themselves on Base when imported.
    from scholarship_portal.models import application, review, scholarship, user  # noqa: F401

    Base.metadata.create_all(bind=bind)
    ensure_scholarship_schema(bind)
    ensure_application_schema(bind)

    with bind.connect() as connection:
        connection.execute(text('SELECT 1'))
    logger.info('Database ready at %s', bind.url.render_as_string(hide_password=True))


def close_database(bind=None) -> None:
    (bind or engine).dispose()
    logger.info('Database connections closed')
