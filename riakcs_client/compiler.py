"""OperationCompiler - turns an OperationSpec plus call args into a RequestDescriptor.

Compilation is pure apart from the Timestamp the client adds, and runs in
distinct phases so each can be tested on its own:

1. apply_defaults
2. check_required
3. resolve_target (method, protocol, host, hostname, path)
4. bind_arguments
5. apply_operation_body
6. run_extras
7. client.add_common_options (identity, timestamp, signature)
8. set_user_agent
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

from riakcs_client.binder import bind_arguments, check_required
from riakcs_client.errors import ProgrammerError
from riakcs_client.models import ClientConfig, Computed, OperationSpec, RequestDescriptor

if TYPE_CHECKING:
    from riakcs_client.client import RiakCS

TOOL_VERSION = "0.1.0"

USER_AGENT = f"riakcs-client/{TOOL_VERSION}"


def resolve(field: str, value: Any, expected: tuple[type, ...], *context: Any) -> Any:
    """Resolve a literal-or-Computed OperationSpec value.

    Raises:
        ProgrammerError: If the value (or what a Computed returns) is not one
            of the expected types.
    """
    if isinstance(value, Computed):
        value = value(*context)
    if not isinstance(value, expected):
        raise ProgrammerError(
            f"{field} must resolve to {'/'.join(t.__name__ for t in expected)}, "
            f"got {type(value).__name__}"
        )
    return value


def apply_defaults(operation: OperationSpec, args: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of args with operation defaults filled in for absent keys."""
    resolved = dict(args)
    for arg_name, default in operation.defaults.items():
        if arg_name in resolved:
            continue
        if isinstance(default, Computed):
            resolved[arg_name] = default(operation, resolved)
        else:
            resolved[arg_name] = default
    return resolved


def resolve_target(
    config: ClientConfig,
    operation: OperationSpec,
    descriptor: RequestDescriptor,
    args: Mapping[str, Any],
) -> None:
    """Fill in method, protocol, host, hostname and path."""
    descriptor.method = resolve("method", operation.method, (str,), descriptor, args).upper()

    protocol = operation.protocol if operation.protocol is not None else config.protocol
    descriptor.protocol = resolve("protocol", protocol, (str,), descriptor, args)

    hostname = operation.hostname if operation.hostname is not None else config.hostname
    descriptor.hostname = resolve("hostname", hostname, (str,), descriptor, args)
    host = operation.host if operation.host is not None else config.hostname
    descriptor.host = resolve("host", host, (str,), descriptor, args)

    descriptor.path = resolve("path", operation.path, (str,), descriptor, args) or "/"


def apply_operation_body(
    operation: OperationSpec,
    descriptor: RequestDescriptor,
    args: Mapping[str, Any],
) -> None:
    """Set the operation-level body and its Content-Length, if one is declared."""
    if operation.body is None:
        return
    body = resolve("body", operation.body, (str, bytes), descriptor, args)
    descriptor.body = body
    raw = body if isinstance(body, bytes) else body.encode("utf-8")
    descriptor.headers["Content-Length"] = str(len(raw))


def run_extras(
    client: RiakCS,
    config: ClientConfig,
    operation: OperationSpec,
    descriptor: RequestDescriptor,
    args: Mapping[str, Any],
) -> None:
    """Run extras hooks; an operation-level list replaces the client default."""
    hooks = operation.extras if operation.extras is not None else config.extras
    for hook in hooks:
        if not callable(hook):
            raise ProgrammerError(f"extras hook {hook!r} in {operation.name} is not callable")
        hook(client, descriptor, args)


def set_user_agent(descriptor: RequestDescriptor) -> None:
    # Last phase, so neither args nor hooks can override it
    for key in [k for k in descriptor.headers if k.lower() == "user-agent"]:
        del descriptor.headers[key]
    descriptor.headers["User-Agent"] = USER_AGENT


def compile_operation(
    client: RiakCS,
    operation: OperationSpec,
    args: Mapping[str, Any] | None = None,
) -> RequestDescriptor:
    """Compile an operation and call args into a signed RequestDescriptor.

    Raises:
        ValidationError: If a required argument is absent.
        ProgrammerError: If the operation spec is malformed.
    """
    # One snapshot per call; credential setters swap the whole config
    config = client.config
    resolved_args = apply_defaults(operation, args or {})
    check_required(operation.arg_specs, resolved_args)

    descriptor = RequestDescriptor()
    resolve_target(config, operation, descriptor, resolved_args)
    bind_arguments(descriptor, operation.arg_specs, resolved_args)
    apply_operation_body(operation, descriptor, resolved_args)
    run_extras(client, config, operation, descriptor, resolved_args)
    client.add_common_options(descriptor, config)
    set_user_agent(descriptor)
    return descriptor
