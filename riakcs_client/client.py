"""RiakCS client - compiles, signs, sends and decodes catalog operations.

Usage:
    with RiakCS(config, catalog) as client:
        result = client.execute("ListBuckets")

    # Callback style; the callback fires exactly once
    client.execute("GetObject", {"Key": "a.txt"}, callback=on_done)

    # asyncio
    result = await client.execute_async("ListBuckets")
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from threading import Lock
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping

import httpx
import pydantic

from riakcs_client.compiler import compile_operation
from riakcs_client.config_loader import build_client_config
from riakcs_client.decoder import decode_response
from riakcs_client.dispatcher import Dispatcher
from riakcs_client.errors import CallError, ConfigurationError, ProgrammerError
from riakcs_client.models import (
    ClientConfig,
    Credentials,
    ErrorResult,
    OperationSpec,
    RequestDescriptor,
    Result,
)
from riakcs_client.signer import add_signature, sign, string_to_sign

logger = logging.getLogger(__name__)

Callback = Callable[[ErrorResult | None, Result | None], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """UTC ISO 8601 with milliseconds, e.g. ``2024-01-02T03:04:05.678Z``."""
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class Completion:
    """Delivers ``(error, result)`` to a callback at most once.

    Later deliveries are dropped, so a transport that reports both an error
    and a response still completes the call a single time.
    """

    def __init__(self, callback: Callback) -> None:
        self._callback = callback
        self._fired = False
        self._lock = Lock()

    @property
    def fired(self) -> bool:
        return self._fired

    def fire(self, error: ErrorResult | None, result: Result | None) -> bool:
        with self._lock:
            if self._fired:
                logger.debug("dropping duplicate completion")
                return False
            self._fired = True
        self._callback(error, result)
        return True


class RiakCS:
    """Client for a RiakCS-style signed query API.

    Args:
        config: A ClientConfig, or a raw mapping validated into one.
        operations: Operation catalog, as a name -> OperationSpec mapping or
            an iterable of OperationSpecs. Read-only after construction.
        connection_agent: ``None`` for the dispatcher's own pooled client,
            ``False`` for a fresh connection per call, or an httpx client to
            reuse.
        clock: Returns the current time; used for the Timestamp parameter.

    Raises:
        ConfigurationError: If credentials, hostname or protocol are missing.
        ProgrammerError: If the catalog holds something other than OperationSpecs.
    """

    def __init__(
        self,
        config: ClientConfig | Mapping[str, Any],
        operations: Mapping[str, OperationSpec] | Iterable[OperationSpec] = (),
        connection_agent: httpx.Client | httpx.AsyncClient | bool | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if not isinstance(config, ClientConfig):
            config = build_client_config(config)
        self._config = config
        self._operations = MappingProxyType(_index_operations(operations))
        self._clock = clock or _utc_now
        self._dispatcher = Dispatcher(
            timeout=config.timeout, connection_agent=connection_agent
        )

    def __enter__(self) -> "RiakCS":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._dispatcher.close()

    async def aclose(self) -> None:
        await self._dispatcher.aclose()

    # -------------------------------------------------------------------------
    # Configuration and credentials
    # -------------------------------------------------------------------------

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def operations(self) -> Mapping[str, OperationSpec]:
        return self._operations

    def access_key_id(self) -> str:
        return self._config.credentials.access_key_id

    def secret_access_key(self) -> str:
        return self._config.credentials.secret_access_key.get_secret_value()

    def account_id(self) -> str | None:
        return self._config.credentials.account_id

    def region(self) -> str | None:
        return self._config.region

    def hostname(self) -> str:
        return self._config.hostname

    def set_access_key_id(self, value: str) -> None:
        self._replace_credentials(access_key_id=value)

    def set_secret_access_key(self, value: str) -> None:
        self._replace_credentials(secret_access_key=value)

    def set_account_id(self, value: str | None) -> None:
        self._replace_credentials(account_id=value)

    def _replace_credentials(self, **changes: Any) -> None:
        current = self._config.credentials
        data = {
            "access_key_id": current.access_key_id,
            "secret_access_key": current.secret_access_key.get_secret_value(),
            "account_id": current.account_id,
        }
        data.update(changes)
        try:
            credentials = Credentials.model_validate(data)
        except pydantic.ValidationError as e:
            raise ConfigurationError(f"Invalid credentials: {e}") from e
        # Single reference swap; in-flight calls keep the config they started with
        self._config = self._config.model_copy(update={"credentials": credentials})

    # -------------------------------------------------------------------------
    # Signing hooks
    # -------------------------------------------------------------------------

    def signature_version(self, config: ClientConfig | None = None) -> int:
        return (config or self._config).signature_version

    def signature_method(self, config: ClientConfig | None = None) -> str:
        return (config or self._config).signature_method

    def str_to_sign(self, descriptor: RequestDescriptor) -> str:
        return string_to_sign(
            descriptor.method, descriptor.host, descriptor.path, descriptor.params
        )

    def signature(self, to_sign: str, config: ClientConfig | None = None) -> str:
        config = config or self._config
        return sign(config.credentials.secret_access_key.get_secret_value(), to_sign)

    def add_signature(self, descriptor: RequestDescriptor, signature: str) -> None:
        add_signature(descriptor, signature)

    def add_common_options(
        self, descriptor: RequestDescriptor, config: ClientConfig | None = None
    ) -> None:
        """Add identity, version and timestamp params, then sign the request."""
        config = config or self._config
        descriptor.add_param("AWSAccessKeyId", config.credentials.access_key_id)
        descriptor.add_param("SignatureVersion", str(self.signature_version(config)))
        descriptor.add_param("SignatureMethod", self.signature_method(config))
        descriptor.add_param("Timestamp", format_timestamp(self._clock()))
        descriptor.add_param("Version", config.api_version)
        descriptor.add_param("Hostname", config.hostname)

        to_sign = self.str_to_sign(descriptor)
        signature = self.signature(to_sign, config)
        if config.debug:
            logger.debug("string to sign: %r", to_sign)
            logger.debug("signature: %s", signature)
        self.add_signature(descriptor, signature)

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def operation(self, name: str) -> OperationSpec:
        try:
            return self._operations[name]
        except KeyError:
            raise ProgrammerError(f"Unknown operation: {name}") from None

    def compile(self, name: str, args: Mapping[str, Any] | None = None) -> RequestDescriptor:
        """Compile an operation without sending it."""
        return compile_operation(self, self.operation(name), args)

    def execute(
        self,
        name: str,
        args: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
        *,
        callback: Callback | None = None,
    ) -> Result | None:
        """Run one operation: compile, send, decode.

        ``options`` keys: ``timeout`` (seconds), ``extract_headers`` and
        ``extract_body`` (per-call decoder overrides).

        Without a callback, returns the Result or raises a CallError. With a
        callback, the callback receives ``(ErrorResult, None)`` or
        ``(None, Result)`` exactly once and execute() returns None.
        ProgrammerErrors are always raised.
        """
        operation = self.operation(name)
        options = options or {}
        try:
            descriptor = compile_operation(self, operation, args)
            raw = self._dispatcher.send(descriptor, timeout=options.get("timeout"))
            result = decode_response(operation, self, raw, options)
        except CallError as e:
            if callback is None:
                raise
            Completion(callback).fire(e.to_error_result(), None)
            return None
        if callback is None:
            return result
        Completion(callback).fire(None, result)
        return None

    async def execute_async(
        self,
        name: str,
        args: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
        *,
        callback: Callback | None = None,
    ) -> Result | None:
        """Async variant of execute(); the HTTP round trip is the only await."""
        operation = self.operation(name)
        options = options or {}
        try:
            descriptor = compile_operation(self, operation, args)
            raw = await self._dispatcher.send_async(descriptor, timeout=options.get("timeout"))
            result = decode_response(operation, self, raw, options)
        except CallError as e:
            if callback is None:
                raise
            Completion(callback).fire(e.to_error_result(), None)
            return None
        if callback is None:
            return result
        Completion(callback).fire(None, result)
        return None


def _index_operations(
    operations: Mapping[str, OperationSpec] | Iterable[OperationSpec],
) -> dict[str, OperationSpec]:
    if isinstance(operations, Mapping):
        items = list(operations.items())
    else:
        items = [(getattr(op, "name", None), op) for op in operations]

    index: dict[str, OperationSpec] = {}
    for name, op in items:
        if not isinstance(op, OperationSpec):
            raise ProgrammerError(f"Catalog entry {name!r} is not an OperationSpec")
        index[name] = op
    return index
