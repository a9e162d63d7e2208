"""Tenant slug generation.

slug_of() is a pure transform from a display name to a URL-safe slug.
Uniqueness is guaranteed by the unique constraint on tenants.slug:
ensure_unique_slug() is only an optimistic pre-check, and
assign_unique_slug() retries with the next counter value whenever the
flush loses a race to a concurrent insert.
"""

import re
from collections.abc import Iterator
from uuid import UUID

import structlog
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fabrica.config.settings import get_settings
from fabrica.core.exceptions import SlugConflictError
from fabrica.db.models.tenant import Tenant
from fabrica.db.repositories.tenant import TenantRepository

logger = structlog.get_logger()

MAX_SLUG_LENGTH = 50
FALLBACK_SLUG = "workspace"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slug_of(name: str | None) -> str:
    """Derive a slug from a display name.

    >>> slug_of("  Acme, Inc! ")
    'acme-inc'
    >>> slug_of("")
    'workspace'
    """
    slug = _NON_ALNUM.sub("-", (name or "").lower()).strip("-")
    slug = slug[:MAX_SLUG_LENGTH].rstrip("-")
    return slug or FALLBACK_SLUG


def slug_candidates(base: str, start: int = 0) -> Iterator[str]:
    """Yield base, base-1, base-2, ... beginning at counter ``start``."""
    counter = start
    while True:
        yield base if counter == 0 else f"{base}-{counter}"
        counter += 1


def _counter_of(slug: str, base: str) -> int:
    if slug == base:
        return 0
    return int(slug.rsplit("-", 1)[1])


async def ensure_unique_slug(
    db: AsyncSession,
    base: str,
    exclude_tenant_id: UUID | None = None,
    max_attempts: int | None = None,
) -> str:
    """Return the first candidate no other tenant currently holds.

    Args:
        db: Database session
        base: Slug to start from
        exclude_tenant_id: Tenant whose own slug does not count as taken
        max_attempts: Bound on candidates tried (default from settings)

    Raises:
        SlugConflictError: If every candidate within the bound is taken
    """
    limit = max_attempts or get_settings().SLUG_MAX_ATTEMPTS
    repo = TenantRepository(db)
    for attempt, candidate in enumerate(slug_candidates(base)):
        if attempt >= limit:
            break
        if not await repo.slug_exists(candidate, exclude_tenant_id=exclude_tenant_id):
            return candidate
    raise SlugConflictError(base, f"No free slug found for '{base}'")


def _is_slug_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig).lower()
    return "slug" in message and ("unique" in message or "duplicate" in message)


async def assign_unique_slug(
    db: AsyncSession,
    tenant: Tenant,
    base: str,
    max_attempts: int | None = None,
) -> Tenant:
    """Give the tenant a unique slug and flush it.

    Each attempt flushes inside a SAVEPOINT. A unique violation on the
    slug rolls back only that savepoint and the next candidate is tried,
    so earlier work in the session is kept.

    Args:
        db: Database session holding the tenant (pending or persistent)
        tenant: Tenant to persist
        base: Slug derived from the tenant's name
        max_attempts: Bound on retries (default from settings)

    Raises:
        SlugConflictError: If no candidate could be stored
        IntegrityError: For constraint violations unrelated to the slug
    """
    limit = max_attempts or get_settings().SLUG_MAX_ATTEMPTS
    state = inspect(tenant)
    if state.pending:
        db.expunge(tenant)
    is_new = not state.persistent

    first = await ensure_unique_slug(
        db, base, exclude_tenant_id=None if is_new else tenant.tenant_id, max_attempts=limit
    )

    for attempt, candidate in enumerate(slug_candidates(base, _counter_of(first, base))):
        if attempt >= limit:
            break
        try:
            # begin_nested() flushes outstanding work first, so the slug
            # must only change inside the savepoint
            async with db.begin_nested():
                tenant.slug = candidate
                db.add(tenant)
            return tenant
        except IntegrityError as exc:
            if not _is_slug_violation(exc):
                raise
            logger.info("slug_conflict_retry", slug=candidate, attempt=attempt + 1)
            if not is_new:
                await db.refresh(tenant)

    raise SlugConflictError(base, f"No free slug found for '{base}'")
