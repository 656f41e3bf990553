from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from eventledger.core.logging_config import configure_logging
from eventledger.database.db import Base, engine
from eventledger.models import bookings as _bookings, events as _events  # noqa: F401
from eventledger.routes import bookings, events, payments, reports

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create all tables (in production, use migrations such as Alembic)
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(title="eventledger", lifespan=lifespan)

# Configure CORS
origins = [
    "*"
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include the routers
app.include_router(events.router)
app.include_router(bookings.router)
app.include_router(payments.router)
app.include_router(reports.router)
