"""
Order placement.

An order is written first and then announced twice (customer invoice, admin
alert). If either announcement fails the freshly written order is deleted
again, so no order survives that somebody was not told about. The delete is
best effort: a failure there is logged and not retried.
"""
from __future__ import annotations
import logging
from typing import Optional

from bson import ObjectId

import mailer
from database import create_document, delete_document, update_document
from schemas import OrderCreate, OrderOut

logger = logging.getLogger(__name__)

INVOICE_FAILED = (
    "Failed to send invoice email. Order was not created. "
    "Please check your email configuration and try again."
)
ADMIN_ALERT_FAILED = (
    "Failed to send admin notification email. Order was not created. "
    "Please check your ADMIN_EMAIL configuration and try again."
)


class OrderPlacementError(Exception):
    def __init__(self, message: str, cause: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


async def _compensate(order_id: str, reason: object) -> None:
    try:
        await delete_document("order", ObjectId(order_id))
        logger.warning("Order %s rolled back: %s", order_id, reason)
    except Exception:
        logger.exception("Failed to delete order %s after placement failure", order_id)


async def place_order(payload: OrderCreate) -> OrderOut:
    saved = await create_document("order", payload.to_document())
    order_id = saved["id"]
    logger.info("Order %s stored as pending for %s", order_id, payload.customer_email)

    try:
        order = OrderOut(**saved)

        ok, error = await mailer.send_invoice_email(order)
        if not ok:
            raise OrderPlacementError(INVOICE_FAILED, error)

        ok, error = await mailer.send_admin_notification_email(order)
        if not ok:
            raise OrderPlacementError(ADMIN_ALERT_FAILED, error)
    except OrderPlacementError as exc:
        await _compensate(order_id, exc.cause)
        raise
    except Exception as exc:
        await _compensate(order_id, exc)
        raise

    logger.info("Order %s placed, total %.2f", order_id, order.total)
    return order


async def set_status(order_id: ObjectId, status: str) -> Optional[OrderOut]:
    # Any status from the enum is accepted, including moving backwards
    updated = await update_document("order", order_id, {"status": status})
    if updated is None:
        return None
    logger.info("Order %s status set to %s", updated["id"], status)
    return OrderOut(**updated)
