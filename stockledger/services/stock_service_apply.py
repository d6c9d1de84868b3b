# stockledger/services/stock_service_apply.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.db.base import utcnow
from stockledger.db.upsert import dialect_insert
from stockledger.metrics import IDEMPOTENT, MOVEMENTS
from stockledger.models.enums import MovementLeg, MovementType
from stockledger.models.stock_level import StockLevel, location_key_of
from stockledger.models.stock_movement import StockMovement
from stockledger.services.errors import StorageError, ValidationError
from stockledger.services.ledger_writer import find_movement, write_movement

log = logging.getLogger("stockledger.engine")


@dataclass(frozen=True)
class MovementResult:
    movement: StockMovement
    applied: bool

    @property
    def after_qty(self) -> int:
        return int(self.movement.after_qty)

    @property
    def delta(self) -> int:
        return int(self.movement.delta)


class _LostIdempotencyRace(Exception):
    """Another writer appended the same movement key between probe and insert."""


async def increment_level(
    session: AsyncSession,
    *,
    product_id: int,
    warehouse_id: int,
    location_id: Optional[int],
    delta: int,
) -> int:
    """
    Atomic upsert-increment of one StockLevel row; returns the new quantity.

    Creates the row with quantity=delta when absent. A single statement, so
    concurrent increments on the same key serialize in the database.
    """
    ins = dialect_insert(session, StockLevel).values(
        product_id=int(product_id),
        warehouse_id=int(warehouse_id),
        location_id=location_id,
        location_key=location_key_of(location_id),
        quantity=int(delta),
        version=1,
        updated_at=utcnow(),
    )
    stmt = ins.on_conflict_do_update(
        index_elements=[StockLevel.product_id, StockLevel.warehouse_id, StockLevel.location_key],
        set_={
            "quantity": StockLevel.quantity + int(delta),
            "version": StockLevel.version + 1,
            "updated_at": ins.excluded.updated_at,
        },
    ).returning(StockLevel.quantity)
    res = await session.execute(stmt)
    return int(res.scalar_one())


def movement_sides(
    *,
    warehouse_id: int,
    location_id: Optional[int],
    delta: int,
    counterparty_warehouse_id: Optional[int],
    counterparty_location_id: Optional[int],
) -> dict:
    """Positive delta: the key is the "to" side. Negative: the key is the "from" side."""
    if delta > 0:
        return {
            "warehouse_from_id": counterparty_warehouse_id,
            "warehouse_to_id": warehouse_id,
            "location_from_id": counterparty_location_id,
            "location_to_id": location_id,
        }
    return {
        "warehouse_from_id": warehouse_id,
        "warehouse_to_id": counterparty_warehouse_id,
        "location_from_id": location_id,
        "location_to_id": counterparty_location_id,
    }


async def apply_movement_impl(  # noqa: C901
    *,
    session: AsyncSession,
    product_id: int,
    warehouse_id: int,
    location_id: Optional[int],
    delta: int,
    movement_type: MovementType | str,
    source_doc_type: str,
    source_doc_id: int,
    actor_id: int,
    source_line_no: int = 1,
    leg: MovementLeg | str = MovementLeg.SINGLE,
    counterparty_warehouse_id: Optional[int] = None,
    counterparty_location_id: Optional[int] = None,
    trace_id: Optional[str] = None,
    storage_retries: int = 1,
) -> MovementResult:
    """
    The only write path into stock state.

    One unit of work (savepoint inside the caller's transaction, otherwise
    an own transaction):

    - idempotency probe on (source_doc_type, source_doc_id, source_line_no, leg):
          a hit returns the existing movement, applied=False, nothing touched
    - upsert-increment of the level row (RETURNING the new quantity)
    - append of the movement carrying after_qty

    A lost race on the movement key rolls the savepoint back (level included)
    and resolves to the winner's movement. Other DB errors get
    `storage_retries` more attempts, then StorageError.

    No business policy here: a negative resulting quantity is returned to the
    caller, which decides whether to refuse it.
    """
    if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
        raise ValidationError(f"delta must be a non-zero integer, got {delta!r}")

    mtype = MovementType(movement_type).value
    leg_val = MovementLeg(leg).value
    key = {
        "source_doc_type": str(source_doc_type),
        "source_doc_id": int(source_doc_id),
        "source_line_no": int(source_line_no),
        "leg": leg_val,
    }

    # caller without a transaction: this call owns (and commits) its own
    owns_tx = not session.in_transaction()

    # ---------- idempotency probe ----------
    try:
        existing = await find_movement(session, **key)
    except DBAPIError as e:
        if owns_tx:
            await session.rollback()
        raise StorageError(f"movement probe failed for {key}: {e}") from e
    if existing is not None:
        IDEMPOTENT.labels(source_doc_type=key["source_doc_type"]).inc()
        log.debug("movement already applied: %s", existing)
        if owns_tx:
            await session.commit()
        return MovementResult(movement=existing, applied=False)

    sides = movement_sides(
        warehouse_id=warehouse_id,
        location_id=location_id,
        delta=delta,
        counterparty_warehouse_id=counterparty_warehouse_id,
        counterparty_location_id=counterparty_location_id,
    )

    attempts = 1 + max(0, int(storage_retries))
    last_exc: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        try:
            async with session.begin_nested():
                after_qty = await increment_level(
                    session,
                    product_id=product_id,
                    warehouse_id=warehouse_id,
                    location_id=location_id,
                    delta=delta,
                )
                mv = await write_movement(
                    session,
                    product_id=product_id,
                    warehouse_id=warehouse_id,
                    location_id=location_id,
                    delta=delta,
                    after_qty=after_qty,
                    movement_type=mtype,
                    actor_id=actor_id,
                    trace_id=trace_id,
                    **sides,
                    **key,
                )
                if mv is None:
                    raise _LostIdempotencyRace()
        except _LostIdempotencyRace:
            winner = await find_movement(session, **key)
            if winner is None:
                if owns_tx:
                    await session.rollback()
                raise StorageError(f"movement key vanished after conflict: {key}")
            IDEMPOTENT.labels(source_doc_type=key["source_doc_type"]).inc()
            log.debug("movement key race lost, using %s", winner)
            if owns_tx:
                await session.commit()
            return MovementResult(movement=winner, applied=False)
        except DBAPIError as e:
            last_exc = e
            log.warning(
                "apply_movement storage failure (attempt %d/%d) product=%s wh=%s loc=%s: %s",
                attempt,
                attempts,
                product_id,
                warehouse_id,
                location_id,
                e,
            )
            continue

        MOVEMENTS.labels(type=mtype, leg=leg_val).inc()
        log.info(
            "movement applied: %s %s/%s/%s delta=%+d after=%d src=%s:%s/%s/%s",
            mtype,
            product_id,
            warehouse_id,
            location_id,
            delta,
            after_qty,
            key["source_doc_type"],
            key["source_doc_id"],
            key["source_line_no"],
            leg_val,
        )
        if owns_tx:
            await session.commit()
        return MovementResult(movement=mv, applied=True)

    if owns_tx:
        await session.rollback()
    log.error("apply_movement gave up after %d attempts: %s", attempts, last_exc)
    raise StorageError(f"failed to persist movement {key}: {last_exc}") from last_exc
