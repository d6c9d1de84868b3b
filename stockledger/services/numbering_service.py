# stockledger/services/numbering_service.py
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.db.upsert import dialect_insert
from stockledger.models.doc_sequence import DocSequence
from stockledger.models.enums import DocType

_PREFIX = {
    DocType.REQUISITION: "REQ",
    DocType.TRANSFER: "TRF",
    DocType.ADJUSTMENT: "ADJ",
}


class NumberingService:
    """
    Document numbers backed by doc_sequences.

    next_value() is one INSERT .. ON CONFLICT DO UPDATE .. RETURNING, so two
    concurrent callers can never receive the same value for a scope. It runs
    inside the caller's transaction: a rolled back document gives its number
    back.

    Formats:
      RECEIPT     WH-{warehouse_code}-IN-000001   (per warehouse)
      DELIVERY    WH-{warehouse_code}-OUT-000001  (per warehouse)
      REQUISITION REQ-0001 / TRANSFER TRF-0001 / ADJUSTMENT ADJ-0001
    """

    @staticmethod
    async def next_value(session: AsyncSession, doc_type: DocType | str, scope: str = "") -> int:
        dt = DocType(doc_type).value
        ins = dialect_insert(session, DocSequence).values(doc_type=dt, scope=scope, last_value=1)
        stmt = ins.on_conflict_do_update(
            index_elements=[DocSequence.doc_type, DocSequence.scope],
            set_={"last_value": DocSequence.last_value + 1},
        ).returning(DocSequence.last_value)
        res = await session.execute(stmt)
        return int(res.scalar_one())

    @classmethod
    async def next_number(
        cls, session: AsyncSession, doc_type: DocType | str, *, warehouse_code: str | None = None
    ) -> str:
        dt = DocType(doc_type)
        if dt in (DocType.RECEIPT, DocType.DELIVERY):
            if not warehouse_code:
                raise ValueError(f"{dt.value} numbers are scoped by warehouse code")
            kind = "IN" if dt == DocType.RECEIPT else "OUT"
            n = await cls.next_value(session, dt, warehouse_code)
            return f"WH-{warehouse_code}-{kind}-{n:06d}"

        n = await cls.next_value(session, dt)
        return f"{_PREFIX[dt]}-{n:04d}"
