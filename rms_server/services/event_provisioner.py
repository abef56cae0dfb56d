"""
rms_server/services/event_provisioner.py
Per-event database provisioning

Creating an event touches two stores without a shared transaction:

    create file (exclusive) -> apply schema -> insert Event + EVENT_CREATED log

The event is committed only once both registry rows exist. If the schema or
the registry insert fails after the file was created, the file is deleted
again before the failure is returned.
"""
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from starlette.requests import HTTPConnection

from rms_server.core.db_types import utcnow
from rms_server.database import RegistryStore, apply_event_schema
from rms_server.errors import ConflictError, InternalError, InvalidError, format_validation_error
from rms_server.orm import Event, EventLogType
from rms_server.schemas.events import DEFAULT_REGION, EventDetails
from rms_server.services.authorization import AuthorizationGate
from rms_server.services.registry import find_event, record_event

logger = logging.getLogger(__name__)

EVENT_DB_SUFFIX = ".db"
SQLITE_SIDE_FILES = ("-journal", "-wal", "-shm")

SchemaApplier = Callable[[Path], Awaitable[None]]


def event_db_path(events_dir: Path, event_code: str) -> Path:
    """Deterministic database location for an event code."""
    return events_dir / f"{event_code}{EVENT_DB_SUFFIX}"


@dataclass
class ProvisionedEvent:
    event_code: str
    db_path: Path


class EventProvisioner:

    def __init__(
        self,
        registry: RegistryStore,
        gate: AuthorizationGate,
        events_dir: Optional[Path] = None,
        schema_applier: SchemaApplier = apply_event_schema,
    ):
        self.registry = registry
        self.gate = gate
        self.events_dir = Path(events_dir).resolve() if events_dir else registry.events_dir
        self.schema_applier = schema_applier

    def db_path_for(self, event_code: str) -> Path:
        return event_db_path(self.events_dir, event_code)

    async def create_event(self, request: HTTPConnection, details: Any) -> ProvisionedEvent:
        user_id = await self.gate.require_global_admin(request)

        try:
            data = EventDetails.model_validate(details)
        except ValidationError as e:
            raise InvalidError("Invalid event details", format_validation_error(e))

        code = data.eventCode
        async with self.registry.session() as db:
            if await find_event(db, code) is not None:
                raise ConflictError(f"Event '{code}' already exists")

        start = data.start or utcnow()
        event = Event(
            code=code,
            name=data.name if data.name and data.name.strip() else code,
            start=start,
            end=data.end or start,
            region=data.region if data.region and data.region.strip() else DEFAULT_REGION,
            type=data.type or 0,
            status=data.status or 0,
            finals=data.finals or 0,
            divisions=data.divisions or 0,
        )

        db_path = self.db_path_for(code)
        self._create_database_file(db_path, code)

        try:
            await self.schema_applier(db_path)
        except Exception as e:
            logger.error(f"Schema application failed for event {code}: {type(e).__name__}: {str(e)}")
            self._remove_database_file(db_path)
            raise InternalError("Failed to initialize event database")

        try:
            async with self.registry.session() as db:
                db.add(event)
                await db.flush()
                await record_event(
                    db,
                    EventLogType.EVENT_CREATED,
                    info=f"Event {code} created",
                    event_code=code,
                    extra={"name": event.name, "dbPath": str(db_path), "createdBy": user_id},
                )
                await db.commit()
        except IntegrityError as e:
            logger.warning(f"Event {code} lost a uniqueness race: {str(e.orig)}")
            self._remove_database_file(db_path)
            raise ConflictError(f"Event '{code}' already exists")
        except Exception as e:
            logger.error(f"Registry insert failed for event {code}: {type(e).__name__}: {str(e)}")
            self._remove_database_file(db_path)
            raise InternalError("Failed to register event")

        logger.info(f"✓ Event {code} provisioned at {db_path}")
        return ProvisionedEvent(event_code=code, db_path=db_path)

    def _create_database_file(self, db_path: Path, code: str) -> None:
        """Create an empty file, failing if anything already exists there."""
        try:
            self.events_dir.mkdir(parents=True, exist_ok=True)
            fd = os.open(db_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            raise ConflictError(f"Database file for event '{code}' already exists")
        except OSError as e:
            logger.error(f"Could not create {db_path}: {str(e)}")
            raise InternalError("Failed to create event database file")
        os.close(fd)

    def _remove_database_file(self, db_path: Path) -> None:
        """Compensating delete. Attempted once; failure is only logged."""
        for candidate in [db_path] + [Path(f"{db_path}{suffix}") for suffix in SQLITE_SIDE_FILES]:
            try:
                candidate.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.error(f"Compensating delete of {candidate} failed: {str(e)}")
        logger.warning(f"Rolled back event database {db_path}")
