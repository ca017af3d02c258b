import types

import pytest

import modelkit
from modelkit.exceptions import (
    ConfigurationError,
    FieldError,
    MissingRequiredField,
    SchemaError,
    ShapeError,
    TypeMismatch,
)


def bar_thing(name):
    return types.SimpleNamespace(
        what=lambda: f'this is a bar named "{name}"',
        type="typeBar",
    )


@pytest.fixture
def foo_schema(engine):
    def pre_init(foo):
        foo.on_change = modelkit.Signal()
        return foo

    return engine(
        {
            # required string with default
            "type": ["string", True, "typeFoo"],
            # required number, defined by its default value
            "baz": 123,
            # required string without default
            "bar": ["string", True],
            # required number with default
            "count": ["number", True, 1],
            # child model
            "bar_thing": bar_thing,
            # child collection
            "bar_thing_list": [bar_thing],
        },
        pre_init=pre_init,
        on_change_listener=lambda foo: foo.on_change.dispatch,
        name="Foo",
    )


@pytest.fixture
def foo(foo_schema):
    foo = foo_schema(
        {
            "bar": "this is a foo",
            "count": 7,
            "bar_thing": "my super bar",
            "bar_thing_list": ["bar1", "bar2", "bar3"],
        }
    )
    foo.get_prefixed_bar = lambda prefix: prefix + foo.bar
    return foo


# -- basics -------------------------------------------------------------------


def test_basics(foo):
    assert foo.type == "typeFoo"
    assert foo.count == 7
    assert foo.baz == 123
    assert foo.get_prefixed_bar("ATTENTION: ") == "ATTENTION: this is a foo"
    assert foo.bar_thing.type == "typeBar"
    assert foo.bar_thing.what() == 'this is a bar named "my super bar"'
    assert len(foo.bar_thing_list) == 3
    assert foo.bar_thing_list[1].what() == 'this is a bar named "bar2"'


def test_missing_required_field_fails_instantiation(foo_schema):
    with pytest.raises(MissingRequiredField) as exc_info:
        foo_schema({"bar_thing": "aa", "bar_thing_list": []})
    assert exc_info.value.field_name == "bar"
    assert isinstance(exc_info.value, FieldError)


def test_change_events_are_forwarded_through_listener_hook(foo):
    received = []
    foo.on_change.add_once(lambda *args: received.append(args))

    foo.bar = "new bar"
    foo.bar = "newer bar"

    assert received == [("bar", "new bar", "this is a foo")]
    assert foo.bar == "newer bar"


def test_defaults_are_converted(engine):
    factory = engine({"type": ["string", True, "typeFoo"], "count": ["number", True, 1]})
    obj = factory({})
    assert obj.type == "typeFoo"
    assert obj.count == 1
    assert obj.to_dict() == {"type": "typeFoo", "count": 1}


def test_no_data_is_treated_as_empty_mapping(engine):
    obj = engine({"count": ["number", False, 2]})()
    assert obj.count == 2


def test_input_is_copied_not_aliased(engine):
    data = {"count": "5"}
    obj = engine({"count": "number"})(data)
    assert obj.count == 5.0
    assert data == {"count": "5"}
    assert obj._data is not data

    obj.count = 6
    assert data == {"count": "5"}
    assert obj._data["count"] == 6


def test_instances_do_not_share_state(engine):
    factory = engine({"name": "string"})
    first, second = factory({"name": "a"}), factory({"name": "b"})
    first.name = "c"
    assert second.name == "b"
    assert first.on_change is not second.on_change


def test_type_mismatch_propagates_with_field_name(strict_engine):
    factory = strict_engine({"name": "string"})
    with pytest.raises(TypeMismatch) as exc_info:
        factory({"name": 5})
    assert exc_info.value.field_name == "name"
    assert isinstance(exc_info.value, TypeError)


def test_non_mapping_data_is_rejected(engine):
    with pytest.raises(TypeMismatch):
        engine({"name": "string"})(["name"])


def test_item_access_goes_through_field_accessors(engine):
    obj = engine({"name": "string"})({"name": "a"})
    received = []
    obj.on_change.add(lambda *args: received.append(args))

    obj["name"] = "b"

    assert obj["name"] == "b"
    assert received == [("name", "b", "a")]
    with pytest.raises(KeyError):
        obj["missing"]
    with pytest.raises(KeyError):
        obj["missing"] = 1


def test_model_class_and_repr(engine):
    factory = engine({"name": "string", "count": 3}, name="Thing")
    obj = factory({"name": "x"})
    assert type(obj).__name__ == "Thing"
    assert isinstance(obj, modelkit.Model)
    assert type(obj).__factory__ is factory
    assert list(type(obj).__fields__) == ["name", "count"]
    assert repr(obj) == "Thing(name='x', count=3)"


def test_fields_cannot_be_deleted(engine):
    obj = engine({"name": "string"})({"name": "x"})
    with pytest.raises(AttributeError):
        del obj.name


# -- change notification ------------------------------------------------------


def test_setting_a_field_dispatches_exactly_once(engine):
    obj = engine({"title": "string", "other": "string"})({"title": "a", "other": "x"})
    received = []
    obj.on_change.add(lambda *args: received.append(args))

    obj.title = "b"

    assert received == [("title", "b", "a")]


def test_change_event_disabled(engine):
    obj = engine({"title": "string"}, change_event=False)({"title": "a"})
    assert not hasattr(obj, "on_change")
    obj.title = "b"
    assert obj.title == "b"


def test_setter_stores_value_without_conversion(engine):
    obj = engine({"count": "number"})({"count": 1})
    obj.count = "2"
    assert obj.count == "2"


# -- arrays -------------------------------------------------------------------


class LastList(list):
    def last(self):
        return self[len(self) - 1]


def test_array_field_maps_every_element(engine):
    obj = engine({"list": ["string"]})({"list": ["a", "b"]})
    assert obj.list == ["a", "b"]
    assert len(obj.list) == 2


def test_array_constructor_decorates_arrays(engine):
    factory = engine({"list": ["string"]}, array_constructor=LastList)
    obj = factory({"list": ["haha", "huhu", "hoho"]})
    assert obj.list.last() == "hoho"
    assert obj.list == ["haha", "huhu", "hoho"]


def test_array_field_rejects_non_sequence(engine):
    with pytest.raises(TypeMismatch):
        engine({"list": ["string"]})({"list": "abc"})


def test_missing_required_array_fails(engine):
    with pytest.raises(MissingRequiredField):
        engine({"list": ["string"]})({})


def test_optional_array_uses_default(engine):
    obj = engine({"list": [["number"], False, ["1", 2]]})({})
    assert obj.list == [1.0, 2]


# -- extra properties ---------------------------------------------------------


def test_extra_properties_hidden_by_default(engine):
    obj = engine({})({"bar": "huhu"})
    assert not hasattr(obj, "bar")


def test_extra_properties_passed_through(engine):
    obj = engine({}, {"extraProperties": True})({"bar": "huhu"})
    assert obj.bar == "huhu"


def test_embed_plain_data_disabled(engine):
    obj = engine({"name": "string"}, embed_plain_data=False)({"name": "a"})
    assert not hasattr(obj, "_data")
    assert obj.name == "a"


# -- computed properties ------------------------------------------------------


def _split_ab(obj, value):
    obj.a, obj.b = value.split("|")


@pytest.fixture
def ab_schema(engine):
    def listener_factory(obj):
        obj.events = []
        return lambda *args: obj.events.append(args)

    return engine(
        {
            "a": "string",
            "b": "string",
            "ab": {
                "cacheKey": ["a", "b"],
                "get": lambda obj: f"{obj.a}|{obj.b}",
                "set": _split_ab,
            },
        },
        on_change_listener=listener_factory,
    )


def test_computed_property_reads_dependencies(ab_schema):
    obj = ab_schema({"a": "AA", "b": "BB"})
    assert obj.ab == "AA|BB"
    obj.a = "XX"
    assert obj.ab == "XX|BB"


def test_computed_property_setter_cascades_in_order(ab_schema):
    obj = ab_schema({"a": "AA", "b": "BB"})

    obj.ab = "CC|DD"

    assert obj.a == "CC"
    assert obj.b == "DD"
    assert obj.events == [
        ("a", "CC", "AA"),
        ("b", "DD", "BB"),
        ("ab", "CC|DD", "AA|BB"),
    ]


def test_dependency_write_refires_computed_property(ab_schema):
    obj = ab_schema({"a": "AA", "b": "BB"})

    obj.b = "ZZ"

    assert obj.events == [("b", "ZZ", "BB"), ("ab", "AA|ZZ", "AA|BB")]


def test_computed_property_is_not_stored(ab_schema):
    obj = ab_schema({"a": "AA", "b": "BB"})
    assert "ab" not in obj._data
    assert obj.to_dict() == {"a": "AA", "b": "BB", "ab": "AA|BB"}


def test_read_only_computed_property(engine):
    obj = engine(
        {
            "n": "number",
            "double": modelkit.computed(["n"], get=lambda obj: obj.n * 2),
        }
    )({"n": 2})
    assert obj.double == 4
    with pytest.raises(AttributeError):
        obj.double = 10


def test_computed_property_without_change_event(engine):
    obj = engine(
        {
            "a": "string",
            "b": "string",
            "ab": modelkit.computed(["a", "b"], lambda o: f"{o.a}|{o.b}", _split_ab),
        },
        change_event=False,
    )({"a": "1", "b": "2"})
    obj.ab = "3|4"
    assert (obj.a, obj.b) == ("3", "4")


@pytest.fixture
def total_schema(engine):
    return engine(
        {
            "a": ["number", False],
            "b": "number",
            "total": modelkit.computed(["a", "b"], get=lambda obj: obj.a + obj.b),
        }
    )


def test_dependency_write_is_kept_when_computed_getter_fails(total_schema):
    obj = total_schema({"b": 1})
    received = []
    obj.on_change.add(lambda *args: received.append(args))

    obj.a = 5

    assert obj.a == 5
    assert obj.total == 6
    assert received == [("a", 5, None)]

    obj.b = 2

    assert received[1:] == [("b", 2, 1), ("total", 7, 6)]


def test_dependency_write_without_listeners_skips_computed_getters(engine):
    calls = []

    def total(obj):
        calls.append(obj.a)
        return obj.a + obj.b

    obj = engine(
        {
            "a": ["number", False],
            "b": "number",
            "total": modelkit.computed(["a", "b"], get=total),
        }
    )({"b": 1})

    obj.a = 5

    assert calls == []
    assert obj.total == 6


def test_computed_write_is_kept_when_getter_fails_beforehand(engine):
    def set_total(obj, value):
        obj.a, obj.b = value

    obj = engine(
        {
            "a": ["number", False],
            "b": "number",
            "total": modelkit.computed(["a", "b"], lambda obj: obj.a + obj.b, set_total),
        }
    )({"b": 1})
    received = []
    obj.on_change.add(lambda *args: received.append(args))

    obj.total = (2, 3)

    assert obj.total == 5
    assert received == [("a", 2, None), ("b", 3, 1)]


def test_repr_survives_failing_computed_getter(total_schema):
    obj = total_schema({"b": 1})
    assert repr(obj) == "Model(a=None, b=1, total=<TypeError>)"


def test_computed_property_with_unknown_dependency_fails_at_definition(engine):
    with pytest.raises(ShapeError) as exc_info:
        engine({"a": "string", "ab": modelkit.computed(["a", "b"], get=str)})
    assert exc_info.value.field_name == "ab"


def test_computed_property_cannot_depend_on_computed(engine):
    with pytest.raises(ShapeError):
        engine(
            {
                "a": "string",
                "x": modelkit.computed(["a"], get=str),
                "y": modelkit.computed(["x"], get=str),
            }
        )


# -- schema definition --------------------------------------------------------


def test_bad_declaration_fails_at_definition(engine):
    with pytest.raises(ShapeError) as exc_info:
        engine({"name": ["boolean"]})
    assert exc_info.value.field_name == "name"


def test_field_declarations_must_be_a_mapping(engine):
    with pytest.raises(SchemaError):
        engine([("name", "string")])


@pytest.mark.parametrize("name", ["_data", "on_change", "to_dict", "_store"])
def test_reserved_field_names(engine, name):
    with pytest.raises(ShapeError):
        engine({name: "string"})


def test_pre_init_must_return_a_model(engine):
    factory = engine({"name": "string"}, pre_init=lambda obj: {"name": "x"})
    with pytest.raises(ConfigurationError):
        factory({"name": "a"})


def test_pre_init_returning_none_keeps_instance(engine):
    seen = []
    factory = engine({"name": "string"}, pre_init=seen.append)
    obj = factory({"name": "a"})
    assert seen == [obj]


def test_schema_options_override_engine_options():
    engine = modelkit.create_engine({"castString": False})
    assert engine.config.cast_string is False

    factory = engine({"name": "string"}, cast_string=True)
    assert factory.config.cast_string is True
    assert factory({"name": 1}).name == "1"
    assert engine.config.cast_string is False


def test_unknown_schema_option(engine):
    with pytest.raises(ConfigurationError):
        engine({"name": "string"}, colour="blue")


def test_define_schema_logs_at_debug(engine, caplog):
    caplog.set_level("DEBUG", logger="modelkit.schema")
    engine.define_schema({"name": "string"}, name="Logged")
    assert "Defined schema 'Logged' with 1 stored and 0 computed field(s)" in caplog.text
