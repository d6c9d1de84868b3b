# stockledger/models/doc_sequence.py
from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from stockledger.db.base import Base


class DocSequence(Base):
    """Per (doc_type, scope) counter behind document numbers; incremented atomically."""

    __tablename__ = "doc_sequences"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    doc_type: Mapped[str] = mapped_column(sa.String(16), nullable=False)
    scope: Mapped[str] = mapped_column(sa.String(64), nullable=False, default="")
    last_value: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)

    __table_args__ = (sa.UniqueConstraint("doc_type", "scope", name="uq_doc_sequences_type_scope"),)
