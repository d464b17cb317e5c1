import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.database import Base, engine, ensure_booking_schema
from backend.models import booking, user  # noqa: F401  registers tables on Base
from backend.routes import auth_routes, booking_routes, event_routes
from backend.services.mailer import SmtpMailer
from backend.services.notifications import NotificationDispatcher
from backend.services.push import PushHub

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = FastAPI(title='Room Booking API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.state.push_hub = PushHub()
app.state.dispatcher = NotificationDispatcher(app.state.push_hub, SmtpMailer())

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
    return {'status': 'Room Booking API Running'}


app.include_router(auth_routes.router, prefix='/api')
app.include_router(booking_routes.router, prefix='/api/bookings')
app.include_router(event_routes.router)
