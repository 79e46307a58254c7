import math
from urllib.parse import urlencode
from fastapi import Request
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

DEFAULT_PER_PAGE = 15
MAX_PER_PAGE = 100


def _page_url(request: Request, page: int) -> str:
    params = dict(request.query_params)
    params['page'] = str(page)
    return f"{request.url.path}?{urlencode(params)}"


async def paginate(session: AsyncSession, query, request: Request, page: int, per_page: int, serialize):
    """Run a select with LIMIT/OFFSET and wrap it in a data/links/meta envelope."""
    total = (await session.execute(select(func.count()).select_from(query.order_by(None).subquery()))).scalar_one()
    rows = (await session.execute(query.limit(per_page).offset((page - 1) * per_page))).scalars().all()

    last_page = max(1, math.ceil(total / per_page))
    start = (page - 1) * per_page
    return {
        'data': [serialize(row) for row in rows],
        'links': {
            'first': _page_url(request, 1),
            'last': _page_url(request, last_page),
            'prev': _page_url(request, page - 1) if page > 1 else None,
            'next': _page_url(request, page + 1) if page < last_page else None,
        },
        'meta': {
            'current_page': page,
            'from': start + 1 if rows else None,
            'to': start + len(rows) if rows else None,
            'last_page': last_page,
            'per_page': per_page,
            'total': total,
            'path': request.url.path,
        },
    }
