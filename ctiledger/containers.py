from dependency_injector import containers, providers

from ctiledger.config import Settings
from ctiledger.database.session import get_db
from ctiledger.repositories.ledger_state import SqlLedgerState
from ctiledger.services.comment_service import CommentService
from ctiledger.services.document_service import DocumentService
from ctiledger.services.incentive_service import IncentiveService
from ctiledger.services.nonce_service import NonceService
from ctiledger.services.point_service import PointService
from ctiledger.services.statistics_service import StatisticsService


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Singleton(Settings)


class RepositoryModule(containers.DeclarativeContainer):
    """Ledger state access."""

    config = providers.DependenciesContainer()

    get_db = providers.Resource(get_db)
    # 서비스들이 같은 트랜잭션 깊이를 공유하도록 세션당 하나
    ledger_state = providers.Singleton(
        SqlLedgerState,
        db=get_db,
        timezone=config.config.provided.TIMEZONE,
    )


class ServiceModule(containers.DeclarativeContainer):
    """Service layer dependencies."""

    config = providers.DependenciesContainer()
    repositories = providers.DependenciesContainer()

    nonce_service = providers.Factory(
        NonceService, ledger=repositories.ledger_state, settings=config.config
    )
    statistics_service = providers.Factory(
        StatisticsService, ledger=repositories.ledger_state, settings=config.config
    )
    document_service = providers.Factory(
        DocumentService,
        ledger=repositories.ledger_state,
        settings=config.config,
        nonce_service=nonce_service,
        statistics_service=statistics_service,
    )
    comment_service = providers.Factory(
        CommentService,
        ledger=repositories.ledger_state,
        settings=config.config,
        nonce_service=nonce_service,
    )
    incentive_service = providers.Factory(
        IncentiveService,
        ledger=repositories.ledger_state,
        settings=config.config,
        document_store=document_service,
        comment_reader=comment_service,
        statistics_service=statistics_service,
        nonce_service=nonce_service,
    )
    point_service = providers.Factory(
        PointService,
        ledger=repositories.ledger_state,
        settings=config.config,
        document_service=document_service,
        incentive_service=incentive_service,
        statistics_service=statistics_service,
        nonce_service=nonce_service,
    )


class Container(containers.DeclarativeContainer):
    """Application container."""

    wiring_config = containers.WiringConfiguration(
        modules=[
            "ctiledger.routers.nonce_router",
            "ctiledger.routers.point_router",
            "ctiledger.routers.document_router",
            "ctiledger.routers.incentive_router",
            "ctiledger.routers.statistics_router",
        ],
    )

    config = providers.Container(ConfigModule)
    repositories = providers.Container(RepositoryModule, config=config)
    services = providers.Container(
        ServiceModule, config=config, repositories=repositories
    )
