"""
Tests for the ezr² interpreter: evaluation, scoping, control flow, functions,
objects and built-ins.
"""

import pytest
import textwrap

from ezrsquared import __version__, run, LexerError, ParserError
from ezrsquared.runtime import (
    Interpreter, Context, SymbolTable, get_global_context, to_python,
    IntegerValue, ObjectValue, ClassValue, StringValue,
)


def execute(source, interpreter=None):
    return run("<test>", textwrap.dedent(source).strip(), interpreter=interpreter)


def evaluate(source, interpreter=None):
    """Run source and return the Python form of every top-level statement value."""
    error, value = execute(source, interpreter)
    assert error is None, error.format()
    return to_python(value)


def last(source, interpreter=None):
    return evaluate(source, interpreter)[-1]


def failure(source, interpreter=None):
    error, value = execute(source, interpreter)
    assert value is None
    assert error is not None
    return error


# --- Program Tests ---

class TestProgram:
    """Test whole-program evaluation."""

    def test_statement_values_collected(self):
        """The program value holds one entry per top-level statement."""
        assert evaluate("1\n2; 3") == (1, 2, 3)

    def test_empty_program(self):
        """An empty program evaluates to an empty array."""
        assert evaluate("") == ()

    def test_lexer_error_returned(self):
        """Lexer errors are returned, not raised."""
        error, value = execute("x : $")
        assert isinstance(error, LexerError)
        assert value is None

    def test_parser_error_returned(self):
        """Parser errors are returned, not raised."""
        error, value = execute("x :")
        assert isinstance(error, ParserError)
        assert value is None

    def test_top_level_return(self):
        """'return' outside a function is an operation error."""
        assert failure("return 1").tag == "operation-error"

    def test_shared_context(self):
        """Runs sharing a context see each other's names."""
        context = Context("<main>", get_global_context())
        run("<test>", "x : 41", context)
        error, value = run("<test>", "x + 1", context)
        assert error is None
        assert to_python(value) == (42,)


# --- Arithmetic Tests ---

class TestArithmetic:
    """Test number operations."""

    @pytest.mark.parametrize("source,expected", [
        ("1 + 2 * 3", 7),
        ("(1 + 2) * 3", 9),
        ("7 / 2", 3),
        ("-7 / 2", -3),
        ("-7 % 3", -1),
        ("7.0 / 2", 3.5),
        ("7.5 % 2", 1.5),
        ("2 ^ 10", 1024),
        ("1 + 2.5", 3),
        ("2.5 + 1", 3.5),
        ("6 & 3", 2),
        ("6 | 3", 7),
        ("6 \\ 3", 5),
        ("1 << 4", 16),
        ("256 >> 4", 16),
        ("~5", -6),
        ("+3", 3),
    ])
    def test_operations(self, source, expected):
        """Integer and float arithmetic."""
        assert last(source) == expected

    def test_result_kind_follows_left_operand(self):
        """Integer op float gives an integer; float op integer gives a float."""
        assert last("type_of(1 + 2.5)") == "integer"
        assert last("type_of(2.5 + 1)") == "float"

    @pytest.mark.parametrize("source,details", [
        ("1 / 0", "Division by zero"),
        ("1.5 / 0", "Division by zero"),
        ("1 % 0", "Modulo by zero"),
        ("1 << -1", "Shift count cannot be negative"),
    ])
    def test_math_errors(self, source, details):
        """Division and modulo by zero are math errors."""
        error = failure(source)
        assert error.tag == "math-error"
        assert error.details == details

    def test_illegal_operation(self):
        """Unsupported operand kinds report both type names."""
        error = failure('1 + "a"')
        assert error.tag == "operation-error"
        assert error.details == "Illegal operation for types 'integer' and 'string'"

    def test_bitwise_needs_integers(self):
        """Bitwise operators reject floats."""
        assert failure("1.5 & 1").tag == "operation-error"

    @pytest.mark.parametrize("source", [
        "1 + huge",
        "\"ab\" * huge",
        "huge.as_integer()",
    ])
    def test_infinite_float_to_integer(self, source):
        """An infinite float cannot be truncated to an integer."""
        error = failure(f"huge : {'1' * 400}.0\n{source}")
        assert error.tag == "math-error"
        assert error.details == "Cannot convert inf to an integer"

    def test_integer_too_large_for_float(self):
        """Mixing a float with an integer beyond the float range is a math error."""
        error = failure(f"1.5 + {'1' * 400}")
        assert error.tag == "math-error"
        assert error.details == "Integer too large to convert to float"


class TestComparisonAndLogic:
    """Test comparisons, junctions and inversion."""

    @pytest.mark.parametrize("source,expected", [
        ("1 = 1", True),
        ("1 = 1.0", False),
        ("1 ! 2", True),
        ("1 < 1.5", True),
        ("2 >= 2", True),
        ('"a" = "a"', True),
        ("(1, 2) = (1, 2)", True),
        ("[1] = [2]", False),
        ("nothing = nothing", True),
        ("1 and 0", False),
        ("0 or \"x\"", True),
        ("invert 0", 1),
        ("invert true", False),
        ("!v false", True),
        ("1 in (1, 2)", True),
        ("3 not in [1, 2]", True),
        ('"el" in "hello"', True),
        ('"a" in {"a" : 1}', True),
    ])
    def test_operations(self, source, expected):
        """Comparison, membership and boolean operators."""
        assert last(source) == expected

    def test_and_evaluates_both_sides(self):
        """'and' does not short-circuit."""
        error = failure("false and undefined_name")
        assert error.tag == "undefined-error"


# --- Container Tests ---

class TestContainers:
    """Test container operators."""

    def test_list_append_in_place(self):
        """'+' on a list appends and yields nothing."""
        assert evaluate("items : [1, 2]\nitems + 3\nitems")[1:] == (None, [1, 2, 3])

    def test_list_extend(self):
        """'+' with another list extends."""
        assert last("items : [1]\nitems + [2, 3]\nitems") == [1, 2, 3]

    def test_list_pop(self):
        """'-' on a list removes and returns the element at an index."""
        assert evaluate("items : [1, 2, 3]\nitems - 0\nitems")[1:] == (1, [2, 3])

    def test_index_operator(self):
        """'<=' indexes sequences."""
        assert last("[10, 20] <= 1") == 20
        assert last('"abc" <= 1') == "b"
        assert last("(1, 2, 3) <= 0") == 1

    @pytest.mark.parametrize("source,details", [
        ("[1] <= 5", "Index cannot be greater than or equal to length of list"),
        ("[1] <= -1", "Index cannot be negative value"),
    ])
    def test_index_errors(self, source, details):
        """Out-of-range indexing is an index error."""
        error = failure(source)
        assert error.tag == "index-error"
        assert error.details == details

    def test_repeat_and_truncate(self):
        """'*' repeats and '/' keeps the first length/n elements."""
        assert last("(1, 2) * 2") == (1, 2, 1, 2)
        assert last('"ab" * 3') == "ababab"
        assert last('"abcdef" / 2') == "abc"
        assert last("[1, 2, 3, 4] / 2") == [1, 2]

    def test_negative_repeat(self):
        """Repeating by a negative count is a math error."""
        error = failure('"ab" * -1')
        assert error.tag == "math-error"
        assert error.details == "String multiplication by negative value"

    def test_dictionary_operations(self):
        """Merge, lookup and removal on dictionaries."""
        source = """
            table : {"a" : 1}
            table + {"b" : 2}
            table <= "b"
            table - "a"
            table
        """
        assert evaluate(source)[2:] == (2, None, {"b": 2})

    def test_missing_key(self):
        """Looking up an absent key is a key error."""
        error = failure('{"a" : 1} <= "z"')
        assert error.tag == "key-error"

    @pytest.mark.parametrize("source,type_name", [
        ("{[1] : 2}", "list"),
        ("{'ab' : 1}", "character_list"),
        ("{{} : 1}", "dictionary"),
        ("{([1], 2) : 1}", "list"),
    ])
    def test_mutable_keys_rejected(self, source, type_name):
        """Keys that can change in place are a type error."""
        error = failure(source)
        assert error.tag == "type-error"
        assert error.details == f"Type '{type_name}' cannot be used as a dictionary key"

    def test_array_key(self):
        """Arrays of immutable values are valid keys."""
        assert last("{(1, 2) : 3} <= (1, 2)") == 3

    def test_aliases_share_storage(self):
        """Assigning a list to another name aliases it."""
        assert last("a : [1]\nb : a\nb + 2\na") == [1, 2]

    def test_compound_assignment_in_place(self):
        """':+' on a list keeps the same list."""
        assert last("items : [1]\nalias : items\nitems :+ 2\nalias") == [1, 2]

    def test_character_list_in_place(self):
        """Character lists grow in place."""
        assert last("chars : 'ab'\nchars :+ 'cd'\nchars") == "abcd"

    def test_strings_are_immutable(self):
        """Compound assignment on a string rebinds a new string."""
        assert last('a : "x"\nb : a\na :+ "y"\n(a, b)') == ("xy", "x")


class TestMembers:
    """Test built-in members reached through attribute access."""

    @pytest.mark.parametrize("source,expected", [
        ('"hello".length', 5),
        ('"hello".slice(1, 3)', "el"),
        ('"a,b,c".split(",")', ("a", "b", "c")),
        ('"-".join([1, 2])', "1-2"),
        ('"x-y".replace("-", "+")', "x+y"),
        ('"ac".insert(1, "b")', "abc"),
        ('" 42 ".as_integer()', 42),
        ('"2.5".as_float()', 2.5),
        ('"".as_boolean()', False),
        ("[1, 2].length", 2),
        ("[1, 2].as_array()", (1, 2)),
        ("(1, 2, 3).slice(0, 2)", (1, 2)),
        ("3.14159.round_to(2)", 3.14),
        ("1.as_float()", 1.0),
        ("12.as_string()", "12"),
        ("true.as_integer()", 1),
        ('{"a" : 1}.keys', ("a",)),
        ('{"a" : 1}.pairs', (("a", 1),)),
    ])
    def test_member_values(self, source, expected):
        """Members of strings, numbers and containers."""
        assert last(source) == expected

    def test_list_mutators(self):
        """List insert/set/remove edit the list in place."""
        source = """
            items : [1, 2, 3]
            items.insert(0, 0)
            items.set(1, 10)
            items.remove(3)
            items
        """
        assert last(source) == [0, 10, 2]

    def test_list_remove_at_returns_element(self):
        """remove_at returns the removed element."""
        assert evaluate("items : [5, 6]\nitems.remove_at(1)\nitems")[1:] == (6, [5])

    def test_character_list_mutators(self):
        """Character list edits are in place."""
        source = """
            chars : 'abc'
            chars.set(0, "x")
            chars.remove_at(2)
            chars
        """
        assert last(source) == "xb"

    def test_character_list_needs_single_character(self):
        """Character list values must have length 1."""
        error = failure("chars : 'abc'\nchars.set(0, \"xy\")")
        assert error.tag == "type-error"
        assert error.details == "Value must be of length 1"

    def test_bad_slice(self):
        """Slice bounds are checked."""
        error = failure('"hello".slice(3, 1)')
        assert error.tag == "index-error"
        assert error.details == "Start cannot be greater than end"

    def test_failed_conversion(self):
        """A string that is not a number cannot convert."""
        error = failure('"abc".as_integer()')
        assert error.tag == "type-error"

    def test_missing_member(self):
        """An unknown member is undefined."""
        assert failure('"abc".nope').tag == "undefined-error"

    def test_cannot_assign_builtin_members(self):
        """Built-in values have no assignable attributes."""
        error = failure('"abc".length : 1')
        assert error.tag == "operation-error"

    def test_uninitialized_object(self):
        """An object definition has no members until it is called."""
        error = failure("object Point do 1\nPoint.x")
        assert error.tag == "operation-error"
        assert error.details == "'retrieve' method called on uninitialized object"


# --- Variable and Scope Tests ---

class TestVariables:
    """Test assignment and name resolution."""

    def test_assignment_value(self):
        """An assignment evaluates to the assigned value."""
        assert evaluate("x : 5\nx") == (5, 5)

    def test_compound_assignment(self):
        """Compound symbols apply the operator to the old value."""
        assert last("x : 5\nx :* 3\nx :- 1\nx") == 14

    def test_compound_assignment_needs_old_value(self):
        """A compound assignment to an unknown name is undefined."""
        assert failure("x :+ 1").tag == "undefined-error"

    def test_undefined_name(self):
        """Reading an unknown name is an undefined error."""
        error = failure("missing")
        assert error.tag == "undefined-error"
        assert error.details == "'missing' is not defined"

    def test_function_locals_do_not_leak(self):
        """Names assigned in a function stay in its context."""
        error = failure("function setter do inner : 5\nsetter()\ninner")
        assert error.tag == "undefined-error"

    def test_global_assignment(self):
        """'global' writes to the outermost script context."""
        assert last("function setter do global counter : 5\nsetter()\ncounter") == 5

    def test_quick_global_assignment(self):
        """'!g' is the quick spelling of 'global'."""
        assert last("function setter do !g counter : 6\nsetter()\ncounter") == 6

    def test_global_access(self):
        """'global name' reads from the script context, skipping locals."""
        source = """
            x : 3
            function fetch do
                x : 99
                return global x
            end
            fetch()
        """
        assert last(source) == 3

    def test_dynamic_scope(self):
        """A function sees the names of the context it is called from."""
        assert last("function reader do value\nvalue : 7\nreader()") == 7

    def test_builtin_constants(self):
        """Global constants and error tag names."""
        assert evaluate("nothing\ntrue\nerr_math\nversion__") == (None, True, "math-error", __version__)


class TestContext:
    """Test symbol tables and contexts directly."""

    def test_symbol_table_chain(self):
        """Lookups fall back to the parent table; writes stay local."""
        parent = SymbolTable()
        child = SymbolTable(parent)
        parent.set("a", IntegerValue(1))
        child.set("b", IntegerValue(2))
        assert child.get("a").value == 1
        assert child.get_local("a") is None
        assert "b" in child and "b" not in parent
        child.remove("b")
        assert child.get("b") is None

    def test_global_target_stops_below_locked(self):
        """Global assignments land in the context just below the locked one."""
        main = Context("<main>", get_global_context())
        inner = main.child("function", None).child("nested", None)
        assert inner.global_target() is main
        assert inner.root() is get_global_context()

    def test_global_context_is_shared(self):
        """The global context is created once."""
        assert get_global_context() is get_global_context()
        assert get_global_context().locked


# --- Control Flow Tests ---

class TestIf:
    """Test if expressions."""

    def test_inline_if_value(self):
        """Inline if evaluates to the taken branch."""
        assert last('x : 2\nif x = 1 do "one" else if x = 2 do "two" else do "other"') == "two"

    def test_inline_if_without_else(self):
        """No branch taken gives nothing."""
        assert last('if false do 1') is None

    def test_block_if_discards(self):
        """Block if evaluates to nothing but runs its body."""
        source = """
            if true do
                x : 1
            end
            x
        """
        assert evaluate(source) == (None, 1)

    def test_quick_if(self):
        """Quick if with else."""
        assert last('!f 1 = 2: "yes" e "no"') == "no"

    def test_condition_truthiness(self):
        """Empty containers and zero are false."""
        assert last('if [] do 1 else do 2') == 2
        assert last('if "x" do 1 else do 2') == 1


class TestLoops:
    """Test count and while loops."""

    @pytest.mark.parametrize("source,expected", [
        ("count to 5 as k do k", (0, 1, 2, 3, 4)),
        ("count from 1 to 10 step 3 as k do k", (1, 4, 7)),
        ("count from 5 to 0 step -2 as k do k", (5, 3, 1)),
        ("count from 0 to 1 step 0.5 as k do k", (0.0, 0.5)),
        ("count to 0 do 1", ()),
        ("!c -> 3 n k: k * 2", (0, 2, 4)),
        ("!c - 1 -> 7 t 2 n k: k", (1, 3, 5)),
    ])
    def test_count_values(self, source, expected):
        """Inline count collects one value per iteration; the end is exclusive."""
        assert last(source) == expected

    def test_float_step_gives_float_variable(self):
        """The loop variable takes the kind of the step."""
        assert last("count to 1 step 0.5 as k do type_of(k)") == ("float", "float")

    def test_block_count_discards(self):
        """Block count evaluates to nothing."""
        source = """
            total : 0
            count from 1 to 5 as k do
                total :+ k
            end
            total
        """
        assert evaluate(source)[1:] == (None, 10)

    def test_skip_and_stop(self):
        """'skip' drops one iteration; 'stop' ends the loop."""
        source = "count to 10 as k do if k = 2 do skip else if k = 4 do stop else do k"
        assert last(source) == (0, 1, 3)

    def test_zero_step(self):
        """A zero step is a math error."""
        error = failure("count to 5 step 0 do 1")
        assert error.tag == "math-error"
        assert error.details == "Count step cannot be zero"

    def test_non_numeric_bound(self):
        """Bounds must be numbers."""
        error = failure('count to "x" do 1')
        assert error.tag == "type-error"
        assert error.details == "Count 'to' value must be an integer or float"

    def test_while(self):
        """While collects body values until the condition fails."""
        assert evaluate("x : 0\nwhile x < 3 do x :+ 1\nx")[1:] == ((1, 2, 3), 3)

    def test_quick_while(self):
        """Quick while loop."""
        assert last("x : 0\n!w x < 2: x :+ 1\nx") == 2

    def test_while_stop(self):
        """'stop' leaves a while loop."""
        source = """
            x : 0
            while true do
                x :+ 1
                if x = 3 do
                    stop
                end
            end
            x
        """
        assert last(source) == 3

    def test_loop_limit(self):
        """The interpreter's loop limit bounds runaway loops."""
        error = failure("while true do 1", Interpreter(loop_limit=50))
        assert error.tag == "run-error"
        assert error.details == "Loop iteration limit exceeded"

    def test_loop_limit_not_reached(self):
        """Loops under the limit run normally."""
        assert last("count to 10 as k do k", Interpreter(loop_limit=10)) == tuple(range(10))


class TestTry:
    """Test try expressions."""

    def test_matching_tag(self):
        """A clause whose tag equals the error tag handles it."""
        assert last('try do 1 / 0 error "math-error" do "caught"') == "caught"

    def test_tag_bound_to_variable(self):
        """'as' binds the error tag."""
        assert last('try do 1 / 0 error "math-error" as tag do tag') == "math-error"

    def test_error_tag_constants(self):
        """The err_* globals hold the tags."""
        assert last("try do 1 / 0 error err_math do 0") == 0

    def test_any_tag(self):
        """'any' matches every error."""
        assert last('try do missing error "any" do "handled"') == "handled"

    def test_catch_all(self):
        """An empty error clause catches everything."""
        assert last('try do [1] <= 9 error "key-error" do 1 error as tag do tag') == "index-error"

    def test_unmatched_error_propagates(self):
        """Errors matching no clause propagate."""
        error = failure('try do 1 / 0 error "key-error" do 0')
        assert error.tag == "math-error"

    def test_no_error(self):
        """Without an error the body value is the result."""
        assert last("try do 5 error do 0") == 5

    def test_tag_must_be_text(self):
        """Tags must be strings or character lists."""
        error = failure("try do 1 / 0 error 5 do 0")
        assert error.tag == "type-error"

    def test_custom_error(self):
        """show_error raises a user tag that try can catch."""
        source = 'try do show_error("custom-error", "boom") error "custom-error" as tag do tag'
        assert last(source) == "custom-error"

    def test_uncaught_custom_error(self):
        """An uncaught user error keeps its tag and message."""
        error = failure('show_error("custom-error", "boom")')
        assert error.tag == "custom-error"
        assert error.details == "boom"

    def test_quick_try(self):
        """Quick try with a tag variable."""
        assert last('!t 1 / 0 e "math-error" -> tag: tag') == "math-error"

    def test_block_try(self):
        """Block try runs the handler and evaluates to nothing."""
        source = """
            try do
                1 / 0
            error "math-error" do
                handled : true
            end
            handled
        """
        assert evaluate(source) == (None, True)


# --- Function Tests ---

class TestFunctions:
    """Test user-defined functions."""

    def test_inline_function_returns_body_value(self):
        """An inline body's value is returned."""
        assert last("function add with a, b do a + b\nadd(2, 3)") == 5

    def test_block_function_returns_nothing(self):
        """A block body returns nothing without 'return'."""
        source = """
            function noop with a do
                a + 1
            end
            noop(1)
        """
        assert last(source) is None

    def test_return(self):
        """'return' leaves the function with a value."""
        source = """
            function sign with k do
                if k < 0 do
                    return -1
                end
                return 1
            end
            (sign(-5), sign(5))
        """
        assert last(source) == (-1, 1)

    def test_recursion(self):
        """Functions can call themselves."""
        source = """
            function fact with k do
                if k <= 1 do
                    return 1
                end
                return k * fact(k - 1)
            end
            fact(5)
        """
        assert last(source) == 120

    def test_anonymous_function(self):
        """Anonymous functions are values."""
        assert last("double : function with k do k * 2\ndouble(4)") == 8

    def test_quick_function(self):
        """Quick function definition."""
        assert last("!fd double n k: k * 2\ndouble(5)") == 10

    @pytest.mark.parametrize("call,details", [
        ("add(1)", "1 too few arguments passed into 'add'"),
        ("add(1, 2, 3)", "1 too many arguments passed into 'add'"),
    ])
    def test_argument_count(self, call, details):
        """Argument counts must match."""
        error = failure(f"function add with a, b do a + b\n{call}")
        assert error.tag == "arguments-error"
        assert error.details == details

    def test_skip_outside_loop(self):
        """'skip' escaping a function is an operation error."""
        error = failure("function bad do skip\nbad()")
        assert error.tag == "operation-error"

    def test_arguments_are_copies(self):
        """Rebinding a parameter does not touch the caller's name."""
        assert last("function change with k do k : 10\nx : 1\nchange(x)\nx") == 1

    def test_calling_data_value_returns_it(self):
        """Calling a built-in value exposes its members and returns it."""
        assert last("x : 1\nx()") == 1

    def test_calling_data_value_with_arguments(self):
        """Built-in values take no arguments."""
        error = failure("x : 5\nx(1, 2)")
        assert error.tag == "operation-error"
        assert error.details == "Illegal operation for type 'integer'"


# --- Object Tests ---

POINT = """
object Point with px, py do
    function total do px + py
end
"""

ANIMALS = """
object Animal with sound do
    function speak do sound
    function kind do "animal"
end
object Dog with sound from Animal do
    function kind do "dog"
end
"""

VEC = """
object Vec with vx do
    special added_to with other do Vec(vx + other.vx)
    special compare_equal with other do vx = other.vx
    special as_string do "Vec(" + vx.as_string() + ")"
end
"""


class TestObjects:
    """Test object definitions and instances."""

    def test_method_call(self):
        """Methods see the instance's fields."""
        assert last(POINT + "pt : Point(1, 2)\npt.total()") == 3

    def test_field_access(self):
        """Fields are read with '.'."""
        assert last(POINT + "Point(1, 2).py") == 2

    def test_field_assignment(self):
        """Fields are assigned through '.'."""
        assert last(POINT + "pt : Point(1, 2)\npt.px : 10\npt.total()") == 12

    def test_instances_are_independent(self):
        """Each call creates a fresh instance context."""
        assert last(POINT + "a : Point(1, 2)\nb : Point(3, 4)\n(a.px, b.px)") == (1, 3)

    def test_identity_equality(self):
        """Without compare_equal, objects are equal only to themselves."""
        assert last(POINT + "a : Point(1, 2)\nb : a\n(a = b, a = Point(1, 2))") == (True, False)

    def test_object_type(self):
        """Instances are objects."""
        error, value = execute(POINT + "Point(1, 2)")
        assert error is None
        instance = value.elements[-1]
        assert isinstance(instance, ObjectValue)
        assert instance.name == "Point"
        assert isinstance(instance.klass, ClassValue)

    def test_inheritance(self):
        """Parent members are inherited and can be overridden."""
        assert last(ANIMALS + 'pet : Dog("woof")\n(pet.speak(), pet.kind())') == ("woof", "dog")

    def test_parent_parameters_required(self):
        """A child must declare its parents' parameters."""
        error = failure("object Animal with sound do 1\nobject Cat from Animal do 2")
        assert error.tag == "type-error"

    def test_parent_must_be_object_definition(self):
        """Parents must be object definitions."""
        error = failure("base : 1\nobject Cat from base do 2")
        assert error.tag == "type-error"
        assert error.details == "Parent must be an object definition"

    def test_return_in_body(self):
        """An object body cannot 'return'."""
        assert failure("object Bad do return 1\nBad()").tag == "operation-error"

    def test_quick_object(self):
        """Quick object definition."""
        source = """
            !od Counter n start:
                total : start
            s
            Counter(5).total
        """
        assert last(source) == 5


class TestSpecialMethods:
    """Test operator overloading through special methods."""

    def test_added_to(self):
        """'+' dispatches to added_to."""
        assert last(VEC + "(Vec(1) + Vec(2)).vx") == 3

    def test_compare_equal(self):
        """'=' dispatches to compare_equal."""
        assert last(VEC + "(Vec(1) = Vec(1), Vec(1) = Vec(2))") == (True, False)

    def test_as_string(self, capsys):
        """show uses as_string."""
        evaluate(VEC + "show(Vec(3))")
        assert capsys.readouterr().out == "Vec(3)\n"

    def test_missing_special(self):
        """Operations without a special method are illegal."""
        error = failure(VEC + "Vec(1) - Vec(1)")
        assert error.tag == "operation-error"
        assert error.details == "Illegal operation for types 'object' and 'object'"

    def test_is_true(self):
        """Conditions use is_true."""
        source = """
            object Flag with on do
                special is_true do on
            end
            if Flag(false) do "yes" else do "no"
            if Flag(true) do "yes" else do "no"
        """
        assert evaluate(source)[-2:] == ("no", "yes")

    def test_is_true_must_return_boolean(self):
        """is_true must return a boolean."""
        source = """
            object Odd do
                special is_true do 1
            end
            if Odd() do 1
        """
        assert failure(source).tag == "type-error"

    def test_check_in(self):
        """'in' with an object on the right dispatches to check_in."""
        source = """
            object Bag do
                special check_in with entry do entry = 1
            end
            (1 in Bag(), 2 in Bag(), 2 not in Bag())
        """
        assert last(source) == (True, False, True)

    def test_hash(self):
        """hash() uses the hash special method."""
        assert last("object Key do special hash do 7\nhash(Key())") == 7

    def test_unknown_special(self):
        """Only known operation names can be special."""
        error = failure("object Bad do special frobnicate do 1\nBad()")
        assert error.tag == "type-error"
        assert error.details == "'frobnicate' is not a special method"

    def test_special_arity(self):
        """Special methods must take the right number of parameters."""
        assert failure("object Bad do special added_to do 1\nBad()").tag == "arguments-error"


# --- Built-in Tests ---

class TestBuiltins:
    """Test built-in functions."""

    def test_show(self, capsys):
        """show prints the plain text of a value."""
        evaluate('show("hi")\nshow(1.5)\nshow([1, "a"])')
        assert capsys.readouterr().out == 'hi\n1.5\n[1, "a"]\n'

    def test_show_returns_nothing(self):
        """show evaluates to nothing."""
        assert last('show("x")') is None

    def test_type_of(self):
        """type_of names the value's type."""
        assert evaluate("type_of(1)\ntype_of([])\ntype_of(show)") == ("integer", "list", "builtin_function")

    def test_get(self, monkeypatch):
        """get reads a line from input."""
        monkeypatch.setattr("builtins.input", lambda prompt="": "typed")
        assert last('get("> ")') == "typed"

    def test_get_at_end_of_input(self, monkeypatch):
        """End of input is an io error."""
        def no_input(prompt=""):
            raise EOFError
        monkeypatch.setattr("builtins.input", no_input)
        assert failure('get("> ")').tag == "io-error"

    def test_show_error_checks_tag(self):
        """show_error needs a text tag."""
        error = failure('show_error(1, "x")')
        assert error.tag == "type-error"
        assert error.details == "Tag must be a string or character_list"

    def test_builtin_argument_count(self):
        """Built-ins check their argument count."""
        error = failure("show()")
        assert error.tag == "arguments-error"
        assert error.details == "1 too few arguments passed into 'show'"

    def test_builtin_values_are_not_mutated(self):
        """Builtin names can be shadowed without affecting other runs."""
        evaluate("show : 1")
        assert last("type_of(show)") == "builtin_function"

    def test_hash_of_values(self):
        """Equal values hash equally."""
        assert last('hash("a") = hash("a")') is True

    def test_string_value_export(self):
        """Runtime values are importable for embedding."""
        assert StringValue("a") == StringValue("a")
