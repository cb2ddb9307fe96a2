"""Atomic named counters backing every issued entry identifier."""

from __future__ import annotations

from typing import Callable, Optional

from flask import current_app
from sqlalchemy import insert, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError

from ..app import db
from ..errors import StorageUnavailable
from ..models import SequenceCounter

SeedFunction = Callable[[], int]


def _increment(name: str) -> Optional[int]:
    counters = SequenceCounter.__table__
    stmt = (
        update(counters)
        .where(counters.c.name == name)
        .values(value=counters.c.value + 1)
        .returning(counters.c.value)
    )
    return db.session.execute(stmt).scalar_one_or_none()


def _bootstrap(name: str, seed: Optional[SeedFunction]) -> int:
    """Create the counter row, starting after the highest value already in use.

    Two requests may race to create the same counter. The primary key lets
    exactly one insert win; the loser rolls back and increments the row the
    winner created.
    """

    highest = seed() if seed else 0
    start = highest + 1
    try:
        db.session.execute(insert(SequenceCounter.__table__).values(name=name, value=start))
    except IntegrityError:
        db.session.rollback()
        current_app.logger.info("[SEQ] counter %s created concurrently; incrementing", name)
        value = _increment(name)
        if value is None:
            raise StorageUnavailable()
        return value
    current_app.logger.info(
        "[SEQ] seeded counter name=%s start=%s recovered_max=%s", name, start, highest
    )
    return start


def allocate(name: str, seed: Optional[SeedFunction] = None) -> int:
    """Return the next value of ``name``. Committed before returning.

    ``seed`` is only consulted when the counter row does not exist yet and
    must return the highest value already issued for this sequence.
    """

    try:
        value = _increment(name)
        if value is None:
            value = _bootstrap(name, seed)
        db.session.commit()
    except (OperationalError, InterfaceError) as exc:
        db.session.rollback()
        current_app.logger.error("[SEQ] storage unavailable name=%s error=%s", name, exc)
        raise StorageUnavailable() from exc
    current_app.logger.debug("[SEQ] allocated name=%s value=%s", name, value)
    return value


def current_value(name: str) -> Optional[int]:
    return (
        db.session.query(SequenceCounter.value).filter(SequenceCounter.name == name).scalar()
    )


def seed_counter(name: str, seed: Optional[SeedFunction] = None) -> tuple[int, bool]:
    """Create the counter from ``seed`` without issuing a value.

    Returns ``(value, created)``; an existing counter is left untouched.
    """

    existing = current_value(name)
    if existing is not None:
        return existing, False
    highest = seed() if seed else 0
    try:
        db.session.execute(insert(SequenceCounter.__table__).values(name=name, value=highest))
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return current_value(name), False
    current_app.logger.info("[SEQ] seeded counter name=%s value=%s", name, highest)
    return highest, True
