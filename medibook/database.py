import os
from dotenv import load_dotenv
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker


load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./medibook.db")

engine = create_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_booking_schema_checked = False

ACTIVE_SLOT_INDEX_NAME = 'uq_bookings_active_slot'
PATIENT_DAY_INDEX_NAME = 'uq_bookings_patient_active_day'


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_booking_schema(bind=None) -> None:
    """Bring an existing ``bookings`` table up to the current shape.

    Tables created by ``create_all`` already carry the partial unique indexes;
    older deployments get them added here, once per process.
    """
    global _booking_schema_checked

    if _booking_schema_checked:
        return

    bind = bind or engine

    with _schema_lock:
        if _booking_schema_checked:
            return

        inspector = inspect(bind)

        if 'bookings' not in inspector.get_table_names():
            _booking_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('bookings')}
        migration_steps = [
            ('notes', 'ALTER TABLE bookings ADD COLUMN notes VARCHAR'),
            ('created_at', 'ALTER TABLE bookings ADD COLUMN created_at TIMESTAMP'),
        ]

        with bind.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    f'CREATE UNIQUE INDEX IF NOT EXISTS {ACTIVE_SLOT_INDEX_NAME} '
                    'ON bookings(practitioner_id, booking_date, booking_time) '
                    "WHERE status = 'booked'"
                )
            )
            connection.execute(
                text(
                    f'CREATE UNIQUE INDEX IF NOT EXISTS {PATIENT_DAY_INDEX_NAME} '
                    'ON bookings(patient_id, booking_date) '
                    "WHERE status = 'booked'"
                )
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_bookings_patient_date ON bookings(patient_id, booking_date)')
            )

        _booking_schema_checked = True
