import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from medibook.core import config
from medibook.database import Base, engine, ensure_booking_schema
from medibook.models import availability, booking, practitioner, service, user  # noqa: F401
from medibook.routes import admin_routes, patient_routes, practitioner_routes

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = FastAPI(title='MediBook Scheduling API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()

    try:
        Base.metadata.create_all(bind=engine)
        ensure_booking_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'MediBook API Running'}


app.include_router(patient_routes.router, prefix='/patient')
app.include_router(practitioner_routes.router, prefix='/practitioner')
app.include_router(admin_routes.router, prefix='/admin')
