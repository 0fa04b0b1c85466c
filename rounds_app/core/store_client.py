"""Supabase (PostgREST) client wrapper: descriptor application, row-capped selects, RPC."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from .config import AppSettings
from .errors import StoreError
from .models import Page
from .query import QueryDescriptor

logger = logging.getLogger(__name__)


def apply_descriptor(query, descriptor: QueryDescriptor):
    """Apply clauses, ordering and the offset/limit window to a postgrest builder."""
    for clause in descriptor.clauses:
        query = clause.apply(query)
    if descriptor.order is not None:
        query = query.order(descriptor.order.column, desc=not descriptor.order.ascending)
    if descriptor.limit is not None:
        start = descriptor.offset or 0
        query = query.range(start, start + descriptor.limit - 1)
    return query


class IssueStore:
    def __init__(self, client: Client):
        self.client = client

    @classmethod
    def from_settings(cls, settings: AppSettings) -> IssueStore:
        url, key = settings.require_credentials()
        return cls(create_client(url, key))

    def select(self, descriptor: QueryDescriptor) -> Page:
        """Run one request; a fresh builder is created per call so windows never accumulate."""
        query = self.client.table(descriptor.table).select(
            descriptor.columns,
            count="exact" if descriptor.count else None,
        )
        query = apply_descriptor(query, descriptor)
        try:
            resp = query.execute()
        except (APIError, httpx.HTTPError) as exc:
            raise StoreError(f"Query on {descriptor.table} failed: {exc}") from exc
        return Page(rows=list(resp.data or []), count=resp.count)

    def rpc(self, name: str, params: dict[str, Any] | None = None) -> Any:
        try:
            resp = self.client.rpc(name, params or {}).execute()
        except (APIError, httpx.HTTPError) as exc:
            raise StoreError(f"RPC {name} failed: {exc}") from exc
        logger.debug("RPC %s returned %s", name, type(resp.data).__name__)
        return resp.data
