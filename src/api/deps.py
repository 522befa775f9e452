"""
Shared FastAPI dependencies for the donation pickup backend.

Provides the async database session dependency used by all route handlers,
plus the pricing configuration and quote provider, both built once from
settings.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.core.config import settings
from src.services.pricingConfig import PricingConfig, pricing_config_from_settings
from src.services.quoteAggregator import select_quote_provider
from src.services.quoteProviders import QuoteProvider

# ---------------------------------------------------------------------------
# Async engine & session factory
# ---------------------------------------------------------------------------
# The engine is created once at module import time.  The session factory
# produces lightweight ``AsyncSession`` instances that are scoped to a single
# request via the ``get_db`` dependency below.
# ---------------------------------------------------------------------------

engine = create_async_engine(
    settings.database_url,
    echo=settings.sql_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session, committed when the request succeeds
    and rolled back when it raises."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ---------------------------------------------------------------------------
# Pricing & quoting
# ---------------------------------------------------------------------------


@lru_cache
def get_pricing_config() -> PricingConfig:
    return pricing_config_from_settings(settings)


@lru_cache
def get_quote_provider() -> QuoteProvider:
    """The provider named by ``QUOTE_MODE``; built once per process so the
    token cache and circuit breaker persist across requests."""
    return select_quote_provider(settings)


# ---------------------------------------------------------------------------
# Annotated type aliases for convenience
# ---------------------------------------------------------------------------
DBSession = Annotated[AsyncSession, Depends(get_db)]
PricingConfigDep = Annotated[PricingConfig, Depends(get_pricing_config)]
QuoteProviderDep = Annotated[QuoteProvider, Depends(get_quote_provider)]
