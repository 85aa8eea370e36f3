"""Tests for projecting call arguments into RequestDescriptor buckets."""

import base64

import pytest

from riakcs_client.binder import bind_arguments, check_required, to_wire
from riakcs_client.errors import ProgrammerError, ValidationError
from riakcs_client.models import ArgSpec, Param, ParamKind, RequestDescriptor


def _bind(arg_specs: dict[str, ArgSpec], args: dict) -> RequestDescriptor:
    descriptor = RequestDescriptor()
    bind_arguments(descriptor, arg_specs, args)
    return descriptor


def _pairs(params: list[Param]) -> list[tuple[str, str | None]]:
    return [(p.name, p.value) for p in params]


class TestCheckRequired:
    def test_missing_required_raises(self):
        specs = {"Bucket": ArgSpec(type=ParamKind.PARAM, required=True)}
        with pytest.raises(ValidationError, match="Bucket is required"):
            check_required(specs, {})

    def test_present_with_none_value_passes(self):
        """Absence means the key is missing, not that its value is None."""
        specs = {"Bucket": ArgSpec(type=ParamKind.PARAM, required=True)}
        check_required(specs, {"Bucket": None})

    def test_first_missing_reported(self):
        specs = {
            "A": ArgSpec(type=ParamKind.PARAM, required=True),
            "B": ArgSpec(type=ParamKind.PARAM, required=True),
        }
        with pytest.raises(ValidationError, match="A is required"):
            check_required(specs, {})

    def test_unknown_args_ignored(self):
        check_required({}, {"Extra": "x"})


class TestScalarKinds:
    def test_param_uses_wire_name(self):
        d = _bind({"BucketName": ArgSpec(type=ParamKind.PARAM, name="Bucket")}, {"BucketName": "b"})
        assert _pairs(d.params) == [("Bucket", "b")]

    def test_param_defaults_to_arg_name(self):
        d = _bind({"Bucket": ArgSpec(type=ParamKind.PARAM)}, {"Bucket": "b"})
        assert _pairs(d.params) == [("Bucket", "b")]

    def test_optional_absent_skipped(self):
        d = _bind({"Bucket": ArgSpec(type=ParamKind.PARAM)}, {})
        assert d.params == []

    def test_optional_none_skipped(self):
        d = _bind({"Bucket": ArgSpec(type=ParamKind.PARAM)}, {"Bucket": None})
        assert d.params == []

    def test_unknown_args_not_bound(self):
        d = _bind({}, {"Stray": "x"})
        assert d.params == []

    def test_resource_always_emitted_without_value(self):
        specs = {"Acl": ArgSpec(type=ParamKind.RESOURCE, name="acl")}
        assert _pairs(_bind(specs, {}).params) == [("acl", None)]
        assert _pairs(_bind(specs, {"Acl": "ignored"}).params) == [("acl", None)]

    def test_param_json(self):
        d = _bind({"Policy": ArgSpec(type=ParamKind.PARAM_JSON)}, {"Policy": {"a": [1, 2]}})
        assert _pairs(d.params) == [("Policy", '{"a":[1,2]}')]

    def test_utf8_bytes_decoded(self):
        d = _bind({"Key": ArgSpec(type=ParamKind.PARAM)}, {"Key": "clé".encode("utf-8")})
        assert _pairs(d.params) == [("Key", "clé")]

    @pytest.mark.parametrize("kind", [ParamKind.PARAM, ParamKind.HEADER])
    def test_non_utf8_bytes_is_validation_error(self, kind):
        with pytest.raises(ValidationError, match="not valid UTF-8") as exc_info:
            _bind({"Key": ArgSpec(type=kind)}, {"Key": b"\xff\xfe"})
        assert isinstance(exc_info.value.original_error, UnicodeDecodeError)

    def test_booleans_rendered_lowercase(self):
        assert to_wire(True) == "true"
        assert to_wire(False) == "false"
        assert to_wire(3) == "3"


class TestArrayKinds:
    def test_param_array_with_prefix(self):
        d = _bind({"Tags": ArgSpec(type=ParamKind.PARAM_ARRAY, prefix="Tag")}, {"Tags": ["x", "y"]})
        assert _pairs(d.params) == [("Tag.1", "x"), ("Tag.2", "y")]

    def test_param_array_scalar_wrapped(self):
        d = _bind({"Tags": ArgSpec(type=ParamKind.PARAM_ARRAY, prefix="Tag")}, {"Tags": "x"})
        assert _pairs(d.params) == [("Tag.1", "x")]

    def test_param_array_prefix_defaults_to_name(self):
        d = _bind({"Id": ArgSpec(type=ParamKind.PARAM_ARRAY, name="InstanceId")}, {"Id": ["a"]})
        assert _pairs(d.params) == [("InstanceId.1", "a")]

    def test_param_array_set(self):
        spec = ArgSpec(type=ParamKind.PARAM_ARRAY_SET, set_name="Attribute", prefix="Name")
        d = _bind({"Attrs": spec}, {"Attrs": ["size", "owner"]})
        assert _pairs(d.params) == [("Attribute.1.Name", "size"), ("Attribute.2.Name", "owner")]

    def test_param_array_set_without_prefix(self):
        spec = ArgSpec(type=ParamKind.PARAM_ARRAY_SET, set_name="Member")
        d = _bind({"M": spec}, {"M": ["a", "b"]})
        assert _pairs(d.params) == [("Member.1", "a"), ("Member.2", "b")]

    def test_param_2d_array(self):
        spec = ArgSpec(type=ParamKind.PARAM_2D_ARRAY, prefix="Grid")
        d = _bind({"G": spec}, {"G": [["a", "b"], ["c"]]})
        assert _pairs(d.params) == [("Grid.1.1", "a"), ("Grid.1.2", "b"), ("Grid.2.1", "c")]

    def test_param_2d_array_set(self):
        spec = ArgSpec(
            type=ParamKind.PARAM_2D_ARRAY_SET, set_name="Filter", subset_name="Value"
        )
        d = _bind({"Filters": spec}, {"Filters": [["a", "b"], ["c"]]})
        assert _pairs(d.params) == [
            ("Filter.1.Value.1", "a"),
            ("Filter.1.Value.2", "b"),
            ("Filter.2.Value.1", "c"),
        ]

    def test_param_array_of_objects(self):
        spec = ArgSpec(type=ParamKind.PARAM_ARRAY_OF_OBJECTS, set_name="Entry")
        d = _bind({"E": spec}, {"E": [{"Id": "1", "Size": 10}, {"Id": "2"}]})
        assert _pairs(d.params) == [
            ("Entry.1.Id", "1"),
            ("Entry.1.Size", "10"),
            ("Entry.2.Id", "2"),
        ]

    def test_param_array_of_objects_rejects_scalars(self):
        spec = ArgSpec(type=ParamKind.PARAM_ARRAY_OF_OBJECTS, set_name="Entry")
        with pytest.raises(ValidationError, match="list of mappings"):
            _bind({"E": spec}, {"E": ["not-a-mapping"]})

    def test_param_data_from_mapping(self):
        spec = ArgSpec(type=ParamKind.PARAM_DATA, prefix="Attribute")
        d = _bind({"Meta": spec}, {"Meta": {"color": "red", "size": 2}})
        assert _pairs(d.params) == [
            ("Attribute.1.Name", "color"),
            ("Attribute.1.Value", "red"),
            ("Attribute.2.Name", "size"),
            ("Attribute.2.Value", "2"),
        ]

    def test_param_data_from_pairs(self):
        spec = ArgSpec(type=ParamKind.PARAM_DATA, prefix="Attribute")
        d = _bind({"Meta": spec}, {"Meta": [("k", "v")]})
        assert _pairs(d.params) == [("Attribute.1.Name", "k"), ("Attribute.1.Value", "v")]

    def test_param_data_rejects_scalar(self):
        spec = ArgSpec(type=ParamKind.PARAM_DATA, prefix="Attribute")
        with pytest.raises(ValidationError, match="mapping or a list of pairs"):
            _bind({"Meta": spec}, {"Meta": 5})


class TestHeaderFormJsonBody:
    def test_header(self):
        d = _bind({"Acl": ArgSpec(type=ParamKind.HEADER, name="x-amz-acl")}, {"Acl": "private"})
        assert d.headers == {"x-amz-acl": "private"}

    def test_header_base64(self):
        d = _bind({"Md5": ArgSpec(type=ParamKind.HEADER_BASE64, name="Content-MD5")}, {"Md5": b"\x01\x02"})
        assert d.headers == {"Content-MD5": base64.b64encode(b"\x01\x02").decode()}

    def test_form_and_form_array(self):
        specs = {
            "Name": ArgSpec(type=ParamKind.FORM),
            "Ids": ArgSpec(type=ParamKind.FORM_ARRAY, name="Id"),
        }
        d = _bind(specs, {"Name": "n", "Ids": ["1", "2"]})
        assert _pairs(d.forms) == [("Name", "n"), ("Id", "1"), ("Id", "2")]

    def test_form_base64(self):
        d = _bind({"Data": ArgSpec(type=ParamKind.FORM_BASE64)}, {"Data": "hello"})
        assert _pairs(d.forms) == [("Data", "aGVsbG8=")]

    def test_json_fields(self):
        d = _bind({"Quota": ArgSpec(type=ParamKind.JSON, name="quota")}, {"Quota": {"max": 5}})
        assert d.json_fields == {"quota": {"max": 5}}

    def test_body(self):
        d = _bind({"Content": ArgSpec(type=ParamKind.BODY)}, {"Content": b"raw"})
        assert d.body == b"raw"

    def test_special_left_alone(self):
        d = _bind({"Custom": ArgSpec(type=ParamKind.SPECIAL)}, {"Custom": "x"})
        assert d.params == [] and d.headers == {} and d.forms == [] and d.body is None


class TestUnknownKind:
    def test_unknown_kind_is_programmer_error(self):
        # model_construct skips validation, simulating a corrupted catalog entry
        spec = ArgSpec.model_construct(type="param-mystery", required=False, name=None)
        with pytest.raises(ProgrammerError, match="unknown parameter kind"):
            _bind({"X": spec}, {"X": "1"})

    def test_unknown_kind_rejected_at_construction(self):
        import pydantic

        with pytest.raises(pydantic.ValidationError):
            ArgSpec(type="param-mystery")
