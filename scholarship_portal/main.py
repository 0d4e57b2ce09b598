import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from scholarship_portal.core import config
from scholarship_portal.database import close_database, init_database
from scholarship_portal.routes import (
    application_routes,
    auth_routes,
    payment_routes,
    review_routes,
    scholarship_routes,
    user_routes,
)

logging.basicConfig(level=config.LOG_LEVEL)

app = FastAPI(title='Scholarship Portal API')

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
        init_database()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')
        raise


@app.on_event('shutdown')
def shutdown_database() -> None:
    close_database()


@app.get('/')
def root():
    return {'status': 'Scholarship Portal API Running'}


app.include_router(auth_routes.router)
app.include_router(user_routes.router)
app.include_router(scholarship_routes.router)
app.include_router(application_routes.router)
app.include_router(payment_routes.router)
app.include_router(review_routes.router)
