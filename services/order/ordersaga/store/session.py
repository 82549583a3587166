from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy import create_engine
from ordersaga.core.config import settings

# Document store lives in its own database; nothing here shares a transaction with the ledger.
class DocumentBase(DeclarativeBase): pass
engine = create_engine(settings.ORDER_STORE_DSN, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
