import threading
from typing import Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ordersaga.core.config import settings
from ordersaga.db import session as ledger_db
from ordersaga.services.cache import build_cache
from ordersaga.services.coordinator import OrderCoordinator
from ordersaga.services.email import EmailQueue
from ordersaga.services.notifier import OrderNotifier
from ordersaga.services.stock_ledger import SqlStockLedger
from ordersaga.services.tasks import TaskLauncher
from ordersaga.store import session as store_db
from ordersaga.store.order_store import SqlOrderStore

security = HTTPBearer(auto_error=False)

# process-wide workers, started and stopped by the app lifecycle hooks
email_queue = EmailQueue()
tasks = TaskLauncher()

_coordinator: Optional[OrderCoordinator] = None
_lock = threading.Lock()

def get_coordinator() -> OrderCoordinator:
    global _coordinator
    with _lock:
        if _coordinator is None:
            _coordinator = OrderCoordinator(
                ledger=SqlStockLedger(ledger_db.SessionLocal),
                store=SqlOrderStore(store_db.SessionLocal),
                cache=build_cache(settings),
                notifier=OrderNotifier(email_queue),
                tasks=tasks,
                cache_ttl=settings.CACHE_TTL_SECONDS,
                admin_email=settings.ADMIN_EMAIL,
                status_email_enabled=settings.STATUS_EMAIL_ENABLED,
                enforce_transitions=settings.ENFORCE_STATUS_TRANSITIONS,
            )
    return _coordinator

def get_current_identity(creds: HTTPAuthorizationCredentials = Depends(security)) -> dict:
    if not creds:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = jwt.decode(creds.credentials, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if payload.get("type") != "access" or not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid access token")
    return payload

def require_admin(identity: dict = Depends(get_current_identity)) -> dict:
    if identity.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Admin only")
    return identity
