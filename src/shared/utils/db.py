"""Schema management and raw SQL access for the checkout domain.

Aggregates are persisted through protean repositories. The few statements
that must be a single conditional UPDATE (stock decrements, hold and label
compare-and-set) run on the SQLAlchemy session behind the current unit of
work, so they commit or roll back together with the repository changes.
"""

from collections.abc import Iterator
from contextlib import contextmanager

from protean import UnitOfWork
from protean.domain import Domain
from protean.utils.globals import current_uow
from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session

# Uniqueness the repositories cannot express on their own
_UNIQUE_INDEXES = (
    "CREATE UNIQUE INDEX IF NOT EXISTS uq_coupons_code ON coupons (code)",
    "CREATE UNIQUE INDEX IF NOT EXISTS uq_tax_rates_location ON tax_rates (country_key, state_key)",
)


def _sql_providers(domain: Domain):
    for _, provider in domain.providers.items():
        if provider.conn_info["provider"] in ("sqlite", "postgresql"):
            yield provider


def setup_db(domain: Domain):
    """Setup database schema"""
    with domain.domain_context():
        for provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])

            # Accessing _dao registers each element's table with SQLAlchemy
            for _, aggregate_record in domain.registry.aggregates.items():
                if aggregate_record.cls.meta_.provider == provider.name:
                    domain.repository_for(aggregate_record.cls)._dao  # noqa: B018

            for _, entity_record in domain.registry.entities.items():
                if entity_record.cls.meta_.provider == provider.name:
                    domain.repository_for(entity_record.cls)._dao  # noqa: B018

            provider._metadata.create_all(engine)
            with engine.begin() as connection:
                for statement in _UNIQUE_INDEXES:
                    connection.execute(text(statement))
            engine.dispose()


def drop_db(domain: Domain):
    """Drop database schema"""
    with domain.domain_context():
        for provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            provider._metadata.drop_all(engine)
            engine.dispose()


def current_session(provider_name: str = "default") -> Session:
    """SQLAlchemy session of the unit of work in progress."""
    if not current_uow:
        raise RuntimeError("No unit of work in progress")
    return current_uow.get_session(provider_name)


@contextmanager
def sql_session(provider_name: str = "default") -> Iterator[Session]:
    """Join the unit of work in progress, or run in a new one that commits on exit."""
    if current_uow:
        yield current_uow.get_session(provider_name)
        return
    with UnitOfWork():
        yield current_uow.get_session(provider_name)
