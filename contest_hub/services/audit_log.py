# services/audit_log.py
from __future__ import annotations

import enum
import inspect
import logging
from contextvars import ContextVar, Token
from datetime import date, datetime
from functools import wraps
from typing import Any, ClassVar, Iterable, Mapping, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from contest_hub.db.database import DataBase
from contest_hub.db.schemas.audit_log import AuditLogCreate, AuditLogRead
from contest_hub.errors import ContestError


class AuditLogService:
    """
    Stores every mutating service call in the ``audit_log`` table.

    Payloads are reduced to JSON-friendly structures before they reach
    :class:`contest_hub.db.database.DataBase`. The acting user is either passed
    explicitly or taken from the per-request context bound by the HTTP layer.
    """

    _instance: ClassVar[Optional["AuditLogService"]] = None

    def __new__(cls) -> "AuditLogService":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if getattr(self, "_initialized", False):
            return

        self._logger = logging.getLogger("contest_hub.audit")
        self._actor_ctx: ContextVar[Optional[str]] = ContextVar("audit_actor", default=None)
        self._initialized = True

    @property
    def _database(self) -> DataBase:
        return DataBase()

    async def log(
        self,
        *,
        action: str,
        actor_id: str | None = None,
        payload: Any | None = None,
    ) -> AuditLogRead:
        """
        Persist one audit entry.

        :param action: machine-readable label (``services.team.add_member``…)
        :param actor_id: user that initiated the action; defaults to the bound actor
        :param payload: arbitrary structure with details (will be serialised)
        """
        payload_map = self._prepare_payload(payload)
        actor_id = actor_id if actor_id is not None else self.current_actor()

        entry = await self._database.create_audit_log(
            AuditLogCreate(action=action, actor_id=actor_id, payload=payload_map)
        )
        self._logger.info("AUDIT action=%s actor=%s entry=%s", action, actor_id or "-", entry.id)
        return entry

    async def list_entries(
        self,
        *,
        limit: int = 100,
        offset: int = 0,
        actor_id: str | None = None,
        action: str | None = None,
    ) -> tuple[list[AuditLogRead], int]:
        """Return recent audit entries."""
        return await self._database.list_audit_logs(
            limit=limit,
            offset=offset,
            actor_id=actor_id,
            action=action,
        )

    # --------------
    # Actor context
    # --------------
    def bind_actor(self, actor_id: Optional[str]) -> Token:
        return self._actor_ctx.set(actor_id)

    def unbind_actor(self, token: Token) -> None:
        self._actor_ctx.reset(token)

    def current_actor(self) -> Optional[str]:
        return self._actor_ctx.get()

    # --------------
    # Serialisation
    # --------------
    def _prepare_payload(self, payload: Any | None) -> dict[str, Any]:
        if payload is None:
            return {}
        serialized = self.serialize(payload)
        if isinstance(serialized, dict):
            return dict(serialized)
        return {"value": serialized}

    def serialize(self, value: Any) -> Any:
        if value is None or isinstance(value, (bool, int, float)):
            return value
        if isinstance(value, enum.Enum):
            return value.value
        if isinstance(value, str):
            return value
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, Mapping):
            return {str(k): self.serialize(v) for k, v in value.items()}
        if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
            return [self.serialize(v) for v in value]
        if hasattr(value, "model_dump"):
            return self.serialize(value.model_dump())
        return repr(value)


audit_logger = AuditLogService()


def _resolve_actor(
    actor_fields: Iterable[str] | None,
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
    signature: inspect.Signature,
) -> str | None:
    if not actor_fields:
        return None
    for field in actor_fields:
        candidate = kwargs.get(field)
        if candidate is not None:
            return str(candidate)
    for idx, name in enumerate(signature.parameters):
        if name in actor_fields and idx < len(args) and args[idx] is not None:
            return str(args[idx])
    return None


def _wrap_async_callable(fn, action: str, *, actor_fields: Iterable[str] | None):
    if getattr(fn, "__audit_wrapped__", False):
        return fn

    signature = inspect.signature(fn)
    logger = logging.getLogger("contest_hub.audit")

    @wraps(fn)
    async def wrapper(*args, **kwargs):
        actor = _resolve_actor(actor_fields, args, kwargs, signature)
        payload: dict[str, Any] = {
            "args": [audit_logger.serialize(a) for a in args[1:]],
            "kwargs": {k: audit_logger.serialize(v) for k, v in kwargs.items()},
        }
        try:
            result = await fn(*args, **kwargs)
        except ContestError as exc:
            payload["error"] = {"kind": exc.kind, "message": exc.message}
            try:
                await audit_logger.log(action=f"{action}.error", actor_id=actor, payload=payload)
            except (SQLAlchemyError, ContestError):
                logger.exception("Could not record audit entry for failed %s", action)
            raise
        payload["result"] = audit_logger.serialize(result)
        try:
            await audit_logger.log(action=action, actor_id=actor, payload=payload)
        except (SQLAlchemyError, ContestError):
            logger.exception("Could not record audit entry for %s", action)
        return result

    wrapper.__audit_wrapped__ = True  # type: ignore[attr-defined]
    return wrapper


def instrument_service_class(
    cls,
    *,
    prefix: str | None = None,
    exclude: Iterable[str] | None = None,
    actor_fields: Iterable[str] | None = ("actor_id",),
) -> None:
    """Wrap public async methods of a service class to emit audit entries."""
    action_prefix = prefix or cls.__name__
    excluded = set(exclude or [])

    for name, attr in list(cls.__dict__.items()):
        if name.startswith("_") or name in excluded:
            continue
        if inspect.iscoroutinefunction(attr):
            setattr(
                cls,
                name,
                _wrap_async_callable(attr, f"{action_prefix}.{name}", actor_fields=actor_fields),
            )


__all__ = [
    "AuditLogService",
    "audit_logger",
    "instrument_service_class",
]
