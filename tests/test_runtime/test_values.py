import pytest

from dialogscript.runtime.errors import ScriptTypeError
from dialogscript.runtime.values import FALSE, NULL, TRUE, RuntimeValue, ValueType


@pytest.mark.parametrize("value, text", [
    (RuntimeValue.number(3), "3"),
    (RuntimeValue.number(-0.0), "0"),
    (RuntimeValue.number(2.5), "2.5"),
    (RuntimeValue.number(0.1 + 0.2), "0.30000000000000004"),
    (RuntimeValue.string("hi"), "hi"),
    (TRUE, "true"),
    (FALSE, "false"),
    (NULL, "null"),
])
def test_text_form(value, text):
    assert str(value) == text


def test_from_native():
    assert RuntimeValue.from_native(True) is TRUE
    assert RuntimeValue.from_native(1) == RuntimeValue(ValueType.NUMBER, 1.0)
    assert RuntimeValue.from_native(2.5).value == 2.5
    assert RuntimeValue.from_native("x").type is ValueType.STRING
    assert RuntimeValue.from_native(None) is NULL


def test_from_native_rejects_collections():
    with pytest.raises(ScriptTypeError):
        RuntimeValue.from_native([1, 2])


def test_to_native():
    assert RuntimeValue.number(3.0).to_native() == 3
    assert isinstance(RuntimeValue.number(3.0).to_native(), int)
    assert RuntimeValue.number(2.5).to_native() == 2.5
    assert RuntimeValue.number(float("inf")).to_native() == float("inf")
    assert TRUE.to_native() is True
    assert NULL.to_native() is None


def test_script_equality():
    assert NULL.script_equals(NULL)
    assert not NULL.script_equals(RuntimeValue.number(0))
    assert not RuntimeValue.number(0).script_equals(NULL)
    assert not RuntimeValue.string("x").script_equals(RuntimeValue.number(0))
    assert not RuntimeValue.string("1").script_equals(RuntimeValue.number(1))
    assert not FALSE.script_equals(RuntimeValue.number(0))
    assert RuntimeValue.number(1).script_equals(RuntimeValue.number(1.0))
    assert RuntimeValue.string("a").script_equals(RuntimeValue.string("a"))


def test_type_names():
    assert RuntimeValue.number(1).type_name == "Number"
    assert NULL.type_name == "Null"
