"""
Order Module - Service Layer
===============================
Order dispatch: submit a draft to a table or room, either creating a new
order or (after explicit confirmation) merging into the open one.

Order + occupancy rows are always written in one transaction. Merges are
guarded by the version columns on both rows; a lost race is re-read and
re-applied a bounded number of times.
"""

import enum
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from common.exceptions import (
    ConcurrencyError, NotFoundError, PersistenceError, ValidationError,
)
from common.helpers import money, parse_money
from config.settings import MERGE_RETRY_LIMIT
from modules.occupancy.models import OccupiedTable
from modules.order.composer import OrderComposer
from modules.order.items import LineItem, coerce_line_item, items_total
from modules.order.models import (
    Order, destination_label, parse_destination_kind, parse_destination_number,
)

logger = logging.getLogger("comanda.order")


class DispatchOutcome(str, enum.Enum):
    CREATED = "created"
    MERGED = "merged"
    CONFIRMATION_REQUIRED = "confirmation_required"


@dataclass
class DispatchResult:
    outcome: DispatchOutcome
    destination: str
    order: Optional[Order] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome in (DispatchOutcome.CREATED, DispatchOutcome.MERGED)


class OrderService:

    # ==========================================
    # Dispatch
    # ==========================================

    def submit(
        self,
        db: Session,
        kind,
        number,
        items: Iterable,
        staff_name: str,
        total=None,
        confirm_merge: bool = False,
    ) -> DispatchResult:
        """
        Submit items to a destination.
        - No open order there: create order + occupancy (CREATED).
        - Open order and not confirmed: write nothing (CONFIRMATION_REQUIRED).
        - Open order and confirmed: append items and add totals (MERGED).

        Raises ValidationError before any write, ConcurrencyError when the
        merge keeps losing, PersistenceError on database failures.
        """
        kind = parse_destination_kind(kind)
        number = parse_destination_number(number)
        line_items = [coerce_line_item(item) for item in (items or [])]
        if not line_items:
            raise ValidationError("El pedido no tiene platillos.")
        if not (staff_name or "").strip():
            raise ValidationError("Falta el nombre del mesero.")

        new_total = items_total(line_items)
        if total is not None:
            client_total = parse_money(total)
            if client_total is None or client_total != new_total:
                raise ValidationError(
                    f"El total enviado ({total}) no coincide con el total calculado ({new_total})."
                )

        label = destination_label(kind, number)

        for attempt in range(1, MERGE_RETRY_LIMIT + 1):
            try:
                occupancy = (
                    db.query(OccupiedTable)
                    .filter(OccupiedTable.kind == kind.value, OccupiedTable.number == number)
                    .first()
                )

                if occupancy is None:
                    order = self._create(db, kind.value, number, label, line_items, new_total, staff_name)
                    db.commit()
                    logger.info(f"Order #{order.id} created for {label} by {staff_name} (total {new_total})")
                    return DispatchResult(DispatchOutcome.CREATED, label, order)

                if not confirm_merge:
                    existing_id = occupancy.order_id
                    existing = db.query(Order).filter(Order.id == existing_id).first()
                    db.rollback()
                    logger.info(f"{label} already has order #{existing_id}; merge needs confirmation")
                    return DispatchResult(DispatchOutcome.CONFIRMATION_REQUIRED, label, existing)

                order = self._merge(db, occupancy, line_items, new_total)
                db.commit()
                logger.info(
                    f"Merged {len(line_items)} item(s) into order #{order.id} at {label} "
                    f"(attempt {attempt}, total {order.total})"
                )
                return DispatchResult(DispatchOutcome.MERGED, label, order)

            except StaleDataError:
                db.rollback()
                logger.warning(f"Version conflict merging into {label} (attempt {attempt}/{MERGE_RETRY_LIMIT})")
                continue

            except IntegrityError:
                # Another submitter created the occupancy first
                db.rollback()
                if not confirm_merge:
                    logger.warning(f"{label} was occupied concurrently; merge needs confirmation")
                    return DispatchResult(DispatchOutcome.CONFIRMATION_REQUIRED, label, None)
                logger.warning(f"{label} was occupied concurrently; re-reading (attempt {attempt})")
                continue

            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Dispatch to {label} failed: {e}")
                raise PersistenceError("No se pudo guardar el pedido. Intente de nuevo.")

        logger.error(f"Giving up merge into {label} after {MERGE_RETRY_LIMIT} attempts")
        raise ConcurrencyError()

    def submit_draft(
        self,
        db: Session,
        composer: OrderComposer,
        kind,
        number,
        staff_name: str,
        total=None,
        confirm_merge: bool = False,
    ) -> DispatchResult:
        """Submit a composer's draft. The draft is cleared only when the order was written."""
        result = self.submit(
            db, kind, number, composer.items, staff_name,
            total=total, confirm_merge=confirm_merge,
        )
        if result.succeeded:
            composer.clear()
        return result

    def _create(self, db, kind: str, number: str, label: str,
                line_items: List[LineItem], total: Decimal, staff_name: str) -> Order:
        snapshot = [item.to_dict() for item in line_items]
        order = Order(
            staff_name=staff_name,
            destination_kind=kind,
            number=number,
            destination=label,
            items=snapshot,
            total=total,
            finished=False,
            kitchen_done=False,
        )
        db.add(order)
        db.flush()  # get order.id

        db.add(OccupiedTable(
            kind=kind,
            number=number,
            order_id=order.id,
            items=list(snapshot),
            total=total,
        ))
        db.flush()
        return order

    def _merge(self, db, occupancy: OccupiedTable, line_items: List[LineItem], added_total: Decimal) -> Order:
        order = db.query(Order).filter(Order.id == occupancy.order_id).first()
        if order is None or order.finished:
            db.rollback()
            raise PersistenceError(
                f"La ocupación de {occupancy.label} apunta a un pedido inexistente o cerrado."
            )

        # Reassign (not mutate) so the JSON columns are flagged dirty
        merged = list(order.items or []) + [item.to_dict() for item in line_items]
        order.items = merged
        order.total = money(Decimal(order.total) + added_total)
        order.kitchen_done = False

        occupancy.items = list(merged)
        occupancy.total = order.total
        db.flush()
        return order

    # ==========================================
    # Queries & kitchen
    # ==========================================

    def get_order(self, db: Session, order_id: int) -> Order:
        order = db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError(f"Pedido #{order_id} no encontrado.")
        return order

    def get_open_orders(self, db: Session) -> List[Order]:
        """Orders the kitchen still has to prepare, oldest first."""
        return (
            db.query(Order)
            .filter(Order.finished == False, Order.kitchen_done == False)  # noqa: E712
            .order_by(Order.id.asc())
            .all()
        )

    def mark_kitchen_done(self, db: Session, order_id: int) -> Order:
        order = self.get_order(db, order_id)
        if order.kitchen_done or order.finished:
            return order
        order.kitchen_done = True
        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            logger.warning(f"Order #{order_id} changed while marking it done in the kitchen")
            raise ConcurrencyError()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Could not mark order #{order_id} as done: {e}")
            raise PersistenceError("No se pudo actualizar el pedido.")
        logger.info(f"Order #{order_id} prepared in the kitchen")
        return order


order_service = OrderService()
