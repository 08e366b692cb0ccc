# lims_core/common/api/pagination.py
from __future__ import annotations

from typing import Callable

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class DefaultPagination(PageNumberPagination):
    page_size = 50
    page_size_query_param = "page_size"
    max_page_size = 500


def paginate(
    request,
    queryset,
    serializer_class,
    *,
    paginator: PageNumberPagination | None = None,
    transform: Callable | None = None,
) -> Response:
    """
    Paginated list contract: { count, next, previous, results }.
    `transform` maps each row on the page (e.g. ORM instance -> record) before serializing.
    """
    p = paginator or DefaultPagination()
    page = p.paginate_queryset(queryset, request)
    rows = list(queryset) if page is None else page
    if transform is not None:
        rows = [transform(r) for r in rows]

    if page is None:
        return Response(serializer_class(rows, many=True).data)
    return p.get_paginated_response(serializer_class(rows, many=True).data)
