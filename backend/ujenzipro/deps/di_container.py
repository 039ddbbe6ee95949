"""
Dependency injection container using dependency-injector.
Wires the session factory, change feed, data gateway, services and controllers.
"""

from dependency_injector import containers, providers

from ujenzipro.controllers.health_controller import HealthController
from ujenzipro.db.gateway import DataGateway, SqlAlchemyGateway
from ujenzipro.db.session import get_sessionmaker
from ujenzipro.realtime.change_feed import ChangeFeed
from ujenzipro.services.health_service import HealthService


class Container(containers.DeclarativeContainer):
    """Dependency injection container."""

    # Configuration
    config = providers.Configuration()

    # Sessionmaker bound to the process engine
    session_maker = providers.Singleton(get_sessionmaker)

    # Realtime fan-out shared by every gateway user in this process
    change_feed = providers.Singleton(ChangeFeed)

    gateway = providers.Singleton(
        SqlAlchemyGateway,
        session_maker=session_maker,
        change_feed=change_feed,
    )

    # Services
    health_service = providers.Singleton(
        HealthService,
        gateway=gateway,
    )

    # Controllers
    health_controller = providers.Factory(
        HealthController,
        health_service=health_service,
    )


# Global container instance
_container: Container = None


def get_container() -> Container:
    """Get the global dependency injection container."""
    global _container
    if _container is None:
        from ujenzipro.core.config import settings

        _container = Container()
        _container.config.from_dict({
            "database_url": settings.DATABASE_URL,
        })
    return _container


def get_gateway() -> DataGateway:
    """FastAPI dependency returning the process data gateway."""
    return get_container().gateway()
