from fastapi import APIRouter, Depends, HTTPException
from typing import List

from ordersaga.api.deps import get_coordinator, get_current_identity, require_admin
from ordersaga.core.errors import ErrorKind, Result
from ordersaga.schemas import CreateOrder, Order, UpdateStatus
from ordersaga.services.coordinator import OrderCoordinator

router = APIRouter()

STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.BUSINESS_RULE: 409,
    ErrorKind.INTERNAL: 500,
}

def unwrap(result: Result):
    if result.is_failure:
        err = result.error
        detail = {"kind": err.kind.value, "message": err.message}
        if err.details:
            detail["details"] = err.details
        raise HTTPException(status_code=STATUS_CODES[err.kind], detail=detail)
    return result.value

@router.post("/v1/orders", response_model=Order, status_code=201)
def create_order(payload: CreateOrder, identity: dict = Depends(get_current_identity),
                 coordinator: OrderCoordinator = Depends(get_coordinator)):
    lines = [(it.product_id, it.quantity) for it in payload.items]
    return unwrap(coordinator.create_order(str(identity["sub"]), lines))

@router.get("/v1/orders/me", response_model=List[Order])
def my_orders(identity: dict = Depends(get_current_identity),
              coordinator: OrderCoordinator = Depends(get_coordinator)):
    return unwrap(coordinator.find_by_user(str(identity["sub"])))

@router.get("/v1/orders", response_model=List[Order])
def all_orders(_: dict = Depends(require_admin),
               coordinator: OrderCoordinator = Depends(get_coordinator)):
    return unwrap(coordinator.find_all())

@router.get("/v1/orders/{order_id}", response_model=Order)
def get_order(order_id: str, identity: dict = Depends(get_current_identity),
              coordinator: OrderCoordinator = Depends(get_coordinator)):
    order = unwrap(coordinator.find_by_id(order_id))
    if identity.get("role") != "admin" and order.user_id != str(identity["sub"]):
        raise HTTPException(status_code=403, detail="Not your order")
    return order

@router.put("/v1/orders/{order_id}/status", response_model=Order)
def update_status(order_id: str, payload: UpdateStatus, _: dict = Depends(require_admin),
                  coordinator: OrderCoordinator = Depends(get_coordinator)):
    return unwrap(coordinator.update_status(order_id, payload.status))
