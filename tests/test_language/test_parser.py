import pytest

from dialogscript.language.ast import (
    BinaryOp,
    BooleanLiteral,
    CallCommand,
    Choice,
    Condition,
    Dialogue,
    FunctionCall,
    InterpolatedString,
    Interpolation,
    JumpCommand,
    Narration,
    NumberLiteral,
    StringLiteral,
    TextLiteral,
    UnaryOp,
    VarCommand,
    VarOperation,
    Variable,
    WaitCommand,
)
from dialogscript.language.lexer import Lexer
from dialogscript.language.parser import Parser, parse_script
from dialogscript.runtime.errors import ScriptSyntaxError


def content(source):
    """Content of the single node in a script."""
    script = parse_script(source)
    assert len(script.nodes) == 1
    return script.nodes[0].content


def expr(text):
    """Parse an expression through a `var` command."""
    command = content(f":: n\nvar $r {text}\n")[0]
    return command.value


def literal_texts(segments):
    return [segment.text for segment in segments if isinstance(segment, TextLiteral)]


def test_condition_scenario():
    script = parse_script(":: start\nvar $x 1\nif $x == 1\n    A: hi #t\nendif\n")

    assert script.node_names == ["start"]
    var, condition = script.nodes[0].content

    assert isinstance(var, VarCommand)
    assert var.variable == "x"
    assert var.operation is VarOperation.SET
    assert var.value == NumberLiteral(1.0, 2, 8)

    assert isinstance(condition, Condition)
    assert condition.key == ("start", 1)
    assert condition.test.to_source() == "$x == 1"
    assert condition.elif_branches == ()
    assert condition.else_branch is None

    (line,) = condition.then_branch
    assert isinstance(line, Dialogue)
    assert line.speaker == "A"
    assert line.emotion is None
    assert literal_texts(line.text) == ["hi"]
    assert line.tags == ("t",)


def test_parser_accepts_token_list():
    source = ":: a\nA: hi\n"
    assert Parser(Lexer(source).tokenize()).parse() == parse_script(source)
    assert Parser.from_source(source).parse() == parse_script(source)


def test_dialogue_with_emotion_and_tags():
    (line,) = content(":: n\nGuard[angry]: Halt! #a,b #c\n")
    assert line.speaker == "Guard"
    assert line.emotion == "angry"
    assert line.tags == ("a", "b", "c")


def test_narration_with_interpolation():
    (line,) = content(":: n\nHi {$name}! #loud\n")
    assert isinstance(line, Narration)
    assert line.text[0] == TextLiteral("Hi ", 2, 1)
    assert isinstance(line.text[1], Interpolation)
    assert line.text[1].expression.name == "name"
    assert line.text[2].text == "!"
    assert line.tags == ("loud",)


def test_choices():
    first, second = content(":: n\n-> Yes\n    A: ok\n-> No [if $x > 0]\n")

    assert isinstance(first, Choice)
    assert literal_texts(first.text) == ["Yes"]
    assert first.condition is None
    assert len(first.content) == 1

    assert literal_texts(second.text) == ["No"]
    assert second.condition.to_source() == "$x > 0"
    assert second.content == ()


def test_choice_block_with_jump():
    (choice,) = content(":: n\n-> Go\n    => target\n")
    assert choice.content == (JumpCommand("target", 3, 5),)


def test_if_elif_else():
    source = (
        ":: n\n"
        "if $a\n"
        "    A: 1\n"
        "elif $b\n"
        "    A: 2\n"
        "elif $c\n"
        "    A: 3\n"
        "else\n"
        "    A: 4\n"
        "endif\n"
        "if $d\n"
        "    B: x\n"
        "endif\n"
    )
    first, second = content(source)

    assert first.key == ("n", 1)
    assert second.key == ("n", 2)
    assert [branch.test.to_source() for branch in first.elif_branches] == ["$b", "$c"]
    assert literal_texts(first.else_branch[0].text) == ["4"]


def test_condition_keys_restart_per_node():
    script = parse_script(
        ":: a\nif true\n    A: x\n    if false\n        B: y\n    endif\nendif\n"
        ":: b\nif true\n    C: z\nendif\n"
    )
    outer = script.get_node("a").content[0]
    inner = outer.then_branch[1]
    assert outer.key == ("a", 1)
    assert inner.key == ("a", 2)
    assert script.get_node("b").content[0].key == ("b", 1)


def test_node_body_may_be_indented():
    script = parse_script(":: n\n    A: hi\n    B: yo\n:: m\nC: x\n")
    assert [len(node.content) for node in script.nodes] == [2, 1]


def test_empty_content_is_elided():
    source = (
        ":: n\n"
        "-> \n"
        "A:\n"
        "#tag\n"
        "if true\n"
        "endif\n"
        "B: real\n"
    )
    (line,) = content(source)
    assert line.speaker == "B"


def test_empty_node_is_dropped():
    script = parse_script(":: empty\n:: full\nA: hi\n")
    assert script.node_names == ["full"]


def test_commands():
    items = content(
        ":: n\n"
        "set $g = 5\n"
        "add $g 2\n"
        "mod $g 3\n"
        "call give(\"sword\", 1)\n"
        "call refresh\n"
        "wait 2\n"
        "jump end\n"
        "=> end\n"
    )
    assert [item.operation for item in items[:3]] == [
        VarOperation.SET, VarOperation.ADD, VarOperation.MOD,
    ]
    assert isinstance(items[3], CallCommand)
    assert items[3].function == "give"
    assert items[3].arguments[0] == StringLiteral("sword", 5, 11)
    assert items[4].arguments == ()
    assert isinstance(items[5], WaitCommand)
    assert items[6].target == items[7].target == "end"


def test_precedence():
    sum_expr = expr("1 + 2 * 3")
    assert isinstance(sum_expr, BinaryOp)
    assert sum_expr.operator == "+"
    assert sum_expr.right.operator == "*"

    assert expr("(1 + 2) * 3").to_source() == "(1 + 2) * 3"
    assert expr("$a || $b && $c").right.operator == "&&"
    assert expr("1 < 2 == true").left.operator == "<"
    assert expr("10 - 4 - 3").left.operator == "-"


def test_unary_operators():
    negated = expr("-$x * 2")
    assert negated.operator == "*"
    assert isinstance(negated.left, UnaryOp)
    assert negated.left.operator == "-"

    assert expr("!$a && $b").left == UnaryOp("!", Variable("a", 2, 9), 2, 8)
    assert expr("+3").operator == "+"


def test_function_calls():
    bare = expr("player_name")
    assert bare == FunctionCall("player_name", (), True, 2, 8)
    assert bare.to_source() == "player_name"

    call = expr('roll(6, "x")')
    assert call.name == "roll"
    assert [arg.to_source() for arg in call.arguments] == ["6", '"x"']
    assert call.to_source() == 'roll(6, "x")'


def test_literals():
    assert expr("true") == BooleanLiteral(True, 2, 8)
    assert expr("2.5").value == 2.5
    assert expr("'plain'") == StringLiteral("plain", 2, 8)


def test_string_interpolation():
    value = expr('"Hi {$name}!"')
    assert isinstance(value, InterpolatedString)
    first, middle, last = value.segments
    assert first.text == "Hi "
    assert middle.expression.name == "name"
    assert last.text == "!"
    assert value.to_source() == '"Hi {$name}!"'


@pytest.mark.parametrize("text", ['"{name}"', '"{$a + 1}"', '"} then {$open"'])
def test_bad_string_interpolation(text):
    with pytest.raises(ScriptSyntaxError):
        expr(text)


@pytest.mark.parametrize("text, value", [
    ('"a { b"', "a { b"),
    ('"{oops"', "{oops"),
    ('"done }"', "done }"),
])
def test_lone_brace_is_plain_text(text, value):
    assert expr(text) == StringLiteral(value, 2, 8)


def test_syntax_error_details():
    with pytest.raises(ScriptSyntaxError) as exc_info:
        parse_script("A: hi\n")

    error = exc_info.value
    assert (error.line, error.column) == (1, 1)
    assert error.expected == "node header '::'"
    assert error.found == "IDENTIFIER 'A'"
    assert str(error) == "Expected node header '::', found IDENTIFIER 'A' at line 1, column 1"


@pytest.mark.parametrize("source", [
    ":: n\nelse\n",
    ":: n\nendif\n",
    ":: n\nvar x 1\n",
    ":: n\nif $x\n    A: hi\n",
    ":: n\nvar $x (1 + 2\n",
    ":: n\n-> Go [when $x]\n",
    ":: n\nA: {$x\n",
    ":: n\njump\n",
    "::\n",
])
def test_syntax_errors(source):
    with pytest.raises(ScriptSyntaxError):
        parse_script(source)
