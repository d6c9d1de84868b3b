# stockledger/services/stock_service_adjust.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.db.base import utcnow
from stockledger.db.upsert import dialect_insert
from stockledger.metrics import CAS_RETRIES, MOVEMENTS
from stockledger.models.enums import MovementLeg, MovementType
from stockledger.models.stock_level import StockLevel, location_key_of
from stockledger.models.stock_movement import StockMovement
from stockledger.services.errors import ConcurrencyConflict, StorageError
from stockledger.services.ledger_writer import write_movement
from stockledger.services.stock_service_apply import movement_sides

log = logging.getLogger("stockledger.engine")

# (old_quantity, new_quantity, difference) -> source document id
OnSwapFn = Callable[[int, int, int], Awaitable[int]]


@dataclass(frozen=True)
class SetQuantityResult:
    old_quantity: int
    new_quantity: int
    difference: int
    source_doc_id: int
    movement: Optional[StockMovement]
    attempts: int


class _CasMiss(Exception):
    pass


async def _ensure_level_row(
    session: AsyncSession, *, product_id: int, warehouse_id: int, location_id: Optional[int]
) -> None:
    stmt = (
        dialect_insert(session, StockLevel)
        .values(
            product_id=int(product_id),
            warehouse_id=int(warehouse_id),
            location_id=location_id,
            location_key=location_key_of(location_id),
            quantity=0,
            version=0,
            updated_at=utcnow(),
        )
        .on_conflict_do_nothing(
            index_elements=[StockLevel.product_id, StockLevel.warehouse_id, StockLevel.location_key]
        )
    )
    await session.execute(stmt)


async def set_quantity_impl(  # noqa: C901
    *,
    session: AsyncSession,
    product_id: int,
    warehouse_id: int,
    location_id: Optional[int],
    new_quantity: int,
    actor_id: int,
    source_doc_type: str,
    on_swap: OnSwapFn,
    trace_id: Optional[str] = None,
    max_retries: int = 5,
    storage_retries: int = 1,
) -> SetQuantityResult:
    """
    Optimistic compare-and-swap to an absolute quantity.

    Per attempt (one savepoint):
      - make sure the level row exists (quantity 0, version 0)
      - read (id, quantity, version)
      - UPDATE .. SET quantity=:new, version=version+1
              WHERE id=:id AND version=:seen RETURNING quantity
      - on_swap(old, new, diff) persists the source document, returns its id
      - diff != 0: append the ADJUSTMENT movement (after_qty = new)

    A version miss means another writer got in between the read and the
    swap: the savepoint (document included) is rolled back and the attempt
    repeated, up to max_retries, then ConcurrencyConflict. A DB error rolls
    the attempt back the same way and gets `storage_retries` more tries,
    then StorageError.
    """
    owns_tx = not session.in_transaction()
    loc_key = location_key_of(location_id)

    cas_misses = 0
    storage_failures = 0
    while cas_misses < int(max_retries):
        attempt = cas_misses + storage_failures + 1
        try:
            async with session.begin_nested():
                await _ensure_level_row(
                    session, product_id=product_id, warehouse_id=warehouse_id, location_id=location_id
                )

                row = (
                    await session.execute(
                        select(StockLevel.id, StockLevel.quantity, StockLevel.version).where(
                            StockLevel.product_id == int(product_id),
                            StockLevel.warehouse_id == int(warehouse_id),
                            StockLevel.location_key == loc_key,
                        )
                    )
                ).one()
                level_id, old_qty, seen_version = int(row[0]), int(row[1]), int(row[2])
                diff = int(new_quantity) - old_qty

                swapped = (
                    await session.execute(
                        update(StockLevel)
                        .where(StockLevel.id == level_id, StockLevel.version == seen_version)
                        .values(
                            quantity=int(new_quantity),
                            version=seen_version + 1,
                            updated_at=utcnow(),
                        )
                        .returning(StockLevel.quantity)
                        .execution_options(synchronize_session=False)
                    )
                ).scalar_one_or_none()
                if swapped is None:
                    raise _CasMiss()

                doc_id = await on_swap(old_qty, int(new_quantity), diff)

                mv: Optional[StockMovement] = None
                if diff != 0:
                    mv = await write_movement(
                        session,
                        product_id=product_id,
                        warehouse_id=warehouse_id,
                        location_id=location_id,
                        delta=diff,
                        after_qty=int(swapped),
                        movement_type=MovementType.ADJUSTMENT.value,
                        source_doc_type=str(source_doc_type),
                        source_doc_id=int(doc_id),
                        source_line_no=1,
                        leg=MovementLeg.SINGLE.value,
                        actor_id=actor_id,
                        trace_id=trace_id,
                        **movement_sides(
                            warehouse_id=warehouse_id,
                            location_id=location_id,
                            delta=diff,
                            counterparty_warehouse_id=None,
                            counterparty_location_id=None,
                        ),
                    )
                    if mv is None:
                        # fresh document id: the key cannot exist unless the store is corrupt
                        raise StorageError(
                            f"adjustment movement key already taken: {source_doc_type}:{doc_id}"
                        )
        except _CasMiss:
            cas_misses += 1
            CAS_RETRIES.inc()
            log.warning(
                "set_quantity CAS miss (attempt %d/%d) product=%s wh=%s loc=%s",
                cas_misses,
                max_retries,
                product_id,
                warehouse_id,
                location_id,
            )
            continue
        except DBAPIError as e:
            storage_failures += 1
            log.warning(
                "set_quantity storage failure (%d/%d) product=%s wh=%s loc=%s: %s",
                storage_failures,
                1 + max(0, int(storage_retries)),
                product_id,
                warehouse_id,
                location_id,
                e,
            )
            if storage_failures > max(0, int(storage_retries)):
                if owns_tx:
                    await session.rollback()
                log.error("set_quantity gave up after %d storage failures: %s", storage_failures, e)
                raise StorageError(
                    f"failed to persist quantity for product={product_id} wh={warehouse_id} loc={location_id}: {e}"
                ) from e
            continue

        if mv is not None:
            MOVEMENTS.labels(type=MovementType.ADJUSTMENT.value, leg=MovementLeg.SINGLE.value).inc()
        log.info(
            "quantity set: %s/%s/%s %d -> %d (%+d) doc=%s:%s",
            product_id,
            warehouse_id,
            location_id,
            old_qty,
            new_quantity,
            diff,
            source_doc_type,
            doc_id,
        )
        if owns_tx:
            await session.commit()
        return SetQuantityResult(
            old_quantity=old_qty,
            new_quantity=int(new_quantity),
            difference=diff,
            source_doc_id=int(doc_id),
            movement=mv,
            attempts=attempt,
        )

    if owns_tx:
        await session.rollback()
    raise ConcurrencyConflict(
        f"stock level changed concurrently {max_retries} times; adjustment not applied",
        details=[
            {
                "type": "concurrency",
                "reason": "cas_retries_exhausted",
                "product_id": int(product_id),
                "warehouse_id": int(warehouse_id),
                "location_id": location_id,
            }
        ],
    )
