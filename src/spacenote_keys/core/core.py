from __future__ import annotations

import importlib
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, cast
from urllib.parse import urlparse

import pymongo
import structlog
from pymongo import AsyncMongoClient
from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

from spacenote_keys.config import Config
from spacenote_keys.errors import TransactionAbortedError

logger = structlog.get_logger(__name__)


class Service:
    """Base class for services with direct database access."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self.database = database
        self._core: Core | None = None

    async def on_start(self) -> None:
        """Initialize service on application startup."""

    async def on_stop(self) -> None:
        """Cleanup service on application shutdown."""

    @property
    def core(self) -> Core:
        """Get the core application context."""
        if self._core is None:
            raise RuntimeError("Core not set for service")
        return self._core

    def set_core(self, core: Core) -> None:
        """Set the core application context."""
        self._core = core


class Services:
    """Service registry that automatically discovers and initializes services."""

    from spacenote_keys.core.modules.access.service import AccessService  # noqa: PLC0415
    from spacenote_keys.core.modules.attachment.service import AttachmentService  # noqa: PLC0415
    from spacenote_keys.core.modules.counter.service import CounterService  # noqa: PLC0415
    from spacenote_keys.core.modules.fence.service import FenceService  # noqa: PLC0415
    from spacenote_keys.core.modules.field.service import FieldService  # noqa: PLC0415
    from spacenote_keys.core.modules.integrity.service import IntegrityService  # noqa: PLC0415
    from spacenote_keys.core.modules.note.service import NoteService  # noqa: PLC0415
    from spacenote_keys.core.modules.rename.service import RenameService  # noqa: PLC0415
    from spacenote_keys.core.modules.session.service import SessionService  # noqa: PLC0415
    from spacenote_keys.core.modules.space.service import SpaceService  # noqa: PLC0415
    from spacenote_keys.core.modules.user.service import UserService  # noqa: PLC0415

    user: UserService
    space: SpaceService
    session: SessionService
    access: AccessService
    fence: FenceService
    counter: CounterService
    field: FieldService
    note: NoteService
    attachment: AttachmentService
    integrity: IntegrityService
    rename: RenameService

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        """Initialize all services automatically using service configuration."""
        self._services: list[Service] = []
        self._database = database

        # Service configuration: (attribute_name, module_path, class_name)
        # Order matters for initialization - user must exist before the admin bootstrap runs
        service_configs = [
            ("user", "spacenote_keys.core.modules.user.service", "UserService"),
            ("space", "spacenote_keys.core.modules.space.service", "SpaceService"),
            ("session", "spacenote_keys.core.modules.session.service", "SessionService"),
            ("access", "spacenote_keys.core.modules.access.service", "AccessService"),
            ("fence", "spacenote_keys.core.modules.fence.service", "FenceService"),
            ("counter", "spacenote_keys.core.modules.counter.service", "CounterService"),
            ("field", "spacenote_keys.core.modules.field.service", "FieldService"),
            ("note", "spacenote_keys.core.modules.note.service", "NoteService"),
            ("attachment", "spacenote_keys.core.modules.attachment.service", "AttachmentService"),
            ("integrity", "spacenote_keys.core.modules.integrity.service", "IntegrityService"),
            ("rename", "spacenote_keys.core.modules.rename.service", "RenameService"),
        ]

        for attr_name, module_path, class_name in service_configs:
            module = importlib.import_module(module_path)
            service_class = cast(type[Service], getattr(module, class_name))
            service_instance = service_class(database)
            setattr(self, attr_name, service_instance)
            self._services.append(service_instance)

    def set_core(self, core: Core) -> None:
        """Set core reference for all services."""
        for service in self._services:
            service.set_core(core)

    async def start_all(self) -> None:
        """Start all services that have startup logic."""
        for service in self._services:
            await service.on_start()

    async def stop_all(self) -> None:
        """Stop all services that have cleanup logic."""
        for service in self._services:
            await service.on_stop()


class Core:
    """Container providing config, database, and all service instances."""

    config: Config
    mongo_client: AsyncMongoClient[dict[str, Any]]
    database: AsyncDatabase[dict[str, Any]]
    services: Services

    def __init__(self, config: Config) -> None:
        """Initialize core with config, MongoDB, and auto-register services."""
        self.config = config
        # tz_aware so stored timestamps compare with utils.now()
        self.mongo_client = AsyncMongoClient(config.database_url, tz_aware=True)
        self.database = self.mongo_client.get_database(urlparse(config.database_url).path[1:])
        self.services = Services(self.database)
        self.services.set_core(self)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Manage application lifecycle - startup and shutdown."""
        await self.on_start()
        try:
            yield
        finally:
            await self.on_stop()

    async def on_start(self) -> None:
        """Start all services on application startup."""
        await self.services.start_all()

    async def on_stop(self) -> None:
        """Stop services and close MongoDB connection on shutdown."""
        await self.services.stop_all()
        await self.mongo_client.aclose()

    async def run_transaction[T](self, callback: Callable[[AsyncClientSession], Awaitable[T]]) -> T:
        """Run callback inside a multi-document transaction.

        Write conflicts are retried by the driver until the configured timeout.
        A transaction that still cannot commit is rolled back as a whole and
        reported as TransactionAbortedError. Errors raised by the callback abort
        the transaction and propagate unchanged.
        """

        async def _callback(session: AsyncClientSession) -> T:
            return await callback(session)

        try:
            with pymongo.timeout(self.config.transaction_timeout):
                async with self.mongo_client.start_session() as session:
                    return await session.with_transaction(_callback)
        except PyMongoError as e:
            if (
                e.timeout
                or e.has_error_label("TransientTransactionError")
                or e.has_error_label("UnknownTransactionCommitResult")
            ):
                logger.warning("transaction_aborted", error=str(e))
                raise TransactionAbortedError from e
            raise
