import math
from typing import Any, List, Tuple
from sqlmodel import Session, select, func

from marketplace.models.common import Pagination


def paginate(session: Session, statement, page: int, limit: int) -> Tuple[List[Any], Pagination]:
    """
    Runs 'statement' for one page and counts the full result set.
    Pages are 1-based.
    """
    total = session.exec(
        select(func.count()).select_from(statement.subquery())
    ).one()

    rows = session.exec(
        statement.offset((page - 1) * limit).limit(limit)
    ).all()

    return list(rows), Pagination(
        page=page,
        limit=limit,
        total=total,
        pages=math.ceil(total / limit) if limit else 0
    )
