"""ArgumentBinder - projects call arguments into a RequestDescriptor.

Each ArgSpec kind decides which bucket of the descriptor a value lands in.
Array kinds expand a sequence into numbered wire parameters, e.g. a
``param-array`` with prefix ``Tag`` and value ``["x", "y"]`` becomes
``Tag.1=x&Tag.2=y``.
"""

from __future__ import annotations

import base64
import json
from typing import Any, Iterable, Mapping

from riakcs_client.errors import ProgrammerError, ValidationError
from riakcs_client.models import ArgSpec, ParamKind, RequestDescriptor


def check_required(arg_specs: Mapping[str, ArgSpec], args: Mapping[str, Any]) -> None:
    """Raise ValidationError for the first required argument absent from args.

    Absent means the key is missing; a key present with value None passes.
    """
    for arg_name, spec in arg_specs.items():
        if spec.required and arg_name not in args:
            raise ValidationError(f"{arg_name} is required")


def to_wire(value: Any) -> str:
    """Render a scalar the way the service expects it on the wire."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ValidationError(
                f"bytes value is not valid UTF-8: {e}", original_error=e
            ) from e
    return str(value)


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _b64(value: Any) -> str:
    raw = value if isinstance(value, bytes) else to_wire(value).encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def bind_arguments(
    descriptor: RequestDescriptor,
    arg_specs: Mapping[str, ArgSpec],
    args: Mapping[str, Any],
) -> None:
    """Bind every declared argument into the descriptor, in declaration order.

    Optional arguments that are absent (or None) are skipped, except
    ``resource`` kinds which always emit a bare flag parameter.
    """
    for arg_name, spec in arg_specs.items():
        if spec.type is ParamKind.RESOURCE:
            descriptor.add_param(spec.name or arg_name)
            continue
        if args.get(arg_name) is None:
            continue
        bind_argument(descriptor, arg_name, spec, args[arg_name])


def bind_argument(
    descriptor: RequestDescriptor,
    arg_name: str,
    spec: ArgSpec,
    value: Any,
) -> None:
    wire_name = spec.name or arg_name
    kind = spec.type

    if kind is ParamKind.PARAM:
        descriptor.add_param(wire_name, to_wire(value))
    elif kind is ParamKind.RESOURCE:
        descriptor.add_param(wire_name)
    elif kind is ParamKind.PARAM_ARRAY:
        prefix = spec.prefix or wire_name
        for i, item in enumerate(_as_list(value), start=1):
            descriptor.add_param(f"{prefix}.{i}", to_wire(item))
    elif kind is ParamKind.PARAM_ARRAY_SET:
        set_name = spec.set_name or wire_name
        for i, item in enumerate(_as_list(value), start=1):
            name = f"{set_name}.{i}.{spec.prefix}" if spec.prefix else f"{set_name}.{i}"
            descriptor.add_param(name, to_wire(item))
    elif kind is ParamKind.PARAM_2D_ARRAY:
        prefix = spec.prefix or wire_name
        for i, row in enumerate(_as_list(value), start=1):
            for j, item in enumerate(_as_list(row), start=1):
                descriptor.add_param(f"{prefix}.{i}.{j}", to_wire(item))
    elif kind is ParamKind.PARAM_2D_ARRAY_SET:
        set_name = spec.set_name or wire_name
        subset_name = spec.subset_name or spec.prefix or "member"
        for i, row in enumerate(_as_list(value), start=1):
            for j, item in enumerate(_as_list(row), start=1):
                descriptor.add_param(f"{set_name}.{i}.{subset_name}.{j}", to_wire(item))
    elif kind is ParamKind.PARAM_ARRAY_OF_OBJECTS:
        set_name = spec.set_name or wire_name
        for i, obj in enumerate(_as_list(value), start=1):
            if not isinstance(obj, Mapping):
                raise ValidationError(f"{arg_name} must be a list of mappings")
            for key, item in obj.items():
                descriptor.add_param(f"{set_name}.{i}.{key}", to_wire(item))
    elif kind is ParamKind.PARAM_DATA:
        prefix = spec.prefix or wire_name
        for i, (key, item) in enumerate(_pairs(arg_name, value), start=1):
            descriptor.add_param(f"{prefix}.{i}.Name", to_wire(key))
            descriptor.add_param(f"{prefix}.{i}.Value", to_wire(item))
    elif kind is ParamKind.PARAM_JSON:
        descriptor.add_param(wire_name, json.dumps(value, separators=(",", ":")))
    elif kind is ParamKind.HEADER:
        descriptor.headers[wire_name] = to_wire(value)
    elif kind is ParamKind.HEADER_BASE64:
        descriptor.headers[wire_name] = _b64(value)
    elif kind is ParamKind.FORM:
        descriptor.add_form(wire_name, to_wire(value))
    elif kind is ParamKind.FORM_ARRAY:
        for item in _as_list(value):
            descriptor.add_form(wire_name, to_wire(item))
    elif kind is ParamKind.FORM_BASE64:
        descriptor.add_form(wire_name, _b64(value))
    elif kind is ParamKind.JSON:
        descriptor.json_fields[wire_name] = value
    elif kind is ParamKind.BODY:
        descriptor.body = value if isinstance(value, (str, bytes)) else to_wire(value)
    elif kind is ParamKind.SPECIAL:
        # Handled by an extras hook
        pass
    else:
        raise ProgrammerError(f"unknown parameter kind {kind!r} for argument {arg_name}")


def _pairs(arg_name: str, value: Any) -> Iterable[tuple[Any, Any]]:
    if isinstance(value, Mapping):
        return list(value.items())
    try:
        return [(k, v) for k, v in value]
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{arg_name} must be a mapping or a list of pairs") from e
