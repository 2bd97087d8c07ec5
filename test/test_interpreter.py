"""
Evaluator tests for Linger
Closures, scoping, return, errors and the list processing properties
"""

import io
import pytest
from interpreter import (
  run,
  create_interpreter,
  make_runtime_env,
  env_bind_value,
  env_extend,
  env_lookup_value,
  eval_ast,
  make_execution_context
)
from parsing import create_parser
from semantics import create_analyzer, LingerSemanticsError
from stdlib import make_value
from error_handling import (
  LingerParseError,
  UnboundNameError,
  TypeMismatchError,
  ArityError,
  EmptySequenceError,
  DivisionByZeroError,
  RecursionDepthError
)


LIST_PROCEDURES = """
filter(f, s) {
  if (is_empty(s)) { return list(); }
  let first = head(s);
  let kept = filter(f, rest(s));
  if (f(first)) { return list(first) + kept; }
  return kept;
}

map(f, s) {
  if (is_empty(s)) { return list(); }
  return list(f(head(s))) + map(f, rest(s));
}

fold_left(f, acc, s) {
  if (is_empty(s)) { return acc; }
  return fold_left(f, f(acc, head(s)), rest(s));
}

length(s) {
  return fold_left((n, x) -> n + 1, 0, s);
}
"""


class TestEnvironment:
  """Test the immutable environment chain"""

  def test_bind_does_not_change_parent(self):
    base = make_runtime_env(None, {'x': make_value(1, "Int")})
    inner = env_bind_value(base, 'x', make_value(2, "Int"))
    assert env_lookup_value(inner, 'x')['value'] == 2
    assert env_lookup_value(base, 'x')['value'] == 1

  def test_lookup_walks_outward(self):
    base = make_runtime_env(None, {'a': make_value(1, "Int")})
    inner = env_extend(base, {'b': make_value(2, "Int")})
    assert env_lookup_value(inner, 'a')['value'] == 1

  def test_unbound_name(self):
    with pytest.raises(UnboundNameError) as exc_info:
      env_lookup_value(make_runtime_env(), 'missing')
    assert exc_info.value.name == 'missing'

  def test_eval_expression_node(self):
    parser = create_parser()
    analyzer = create_analyzer()
    node = analyzer.analyze_expression(parser.parse_expression("x * 2 + 1"))
    env = make_runtime_env(None, {'x': make_value(20, "Int")})
    value, _ = eval_ast(node, env, False, make_execution_context())
    assert value == make_value(41, "Int")


class TestBasicEvaluation:
  """Test expressions and statements inside main"""

  def test_print_literals(self, run_main):
    assert run_main('print(1); print(true); print("text"); print(list());') == \
        ["1", "true", "text", "[]"]

  def test_arithmetic_precedence(self, run_main):
    assert run_main("print(1 + 2 * 3); print((1 + 2) * 3); print(-7 / 2); print(-7 % 2);") == \
        ["7", "9", "-3", "-1"]

  def test_large_integers(self, run_main):
    assert run_main("print(9223372036854775807 + 1);") == ["9223372036854775808"]

  def test_string_concatenation(self, run_main):
    assert run_main('print("ab" + "cd");') == ["abcd"]

  def test_comparisons_and_logic(self, run_main):
    assert run_main("print(1 < 2 && 2 <= 2); print(!(3 > 4) || false); print(1 != 2);") == \
        ["true", "true", "true"]

  def test_logical_operators_short_circuit(self, run_main):
    assert run_main("print(false && head(list())); print(true || head(list()));") == \
        ["false", "true"]

  def test_if_else_chain(self, run_main):
    body = """
    let n = 7;
    if (n < 5) { print("small"); } else if (n < 10) { print("medium"); } else { print("large"); }
    """
    assert run_main(body) == ["medium"]

  def test_only_chosen_branch_runs(self, run_main):
    assert run_main("if (true) { print(1); } else { print(head(list())); }") == ["1"]

  def test_print_returns_its_argument(self, run_main):
    assert run_main("print(print(5) + 1);") == ["5", "6"]

  def test_print_renders_functions(self, run_main):
    output = run_main("print(helper); print((x) -> x); print(head);", "helper() { }")
    assert output == ["<procedure helper>", "<lambda>", "<builtin head>"]


class TestProceduresAndClosures:
  """Test calls, closures and lexical scope"""

  def test_procedure_call(self, run_main):
    assert run_main("print(add(2, 3));", "add(a, b) { return a + b; }") == ["5"]

  def test_procedures_may_call_later_definitions(self, run_main):
    procedures = "first() { return second(); } second() { return 2; }"
    assert run_main("print(first());", procedures) == ["2"]

  def test_recursion(self, run_main):
    procedures = "fact(n) { if (n <= 1) { return 1; } return n * fact(n - 1); }"
    assert run_main("print(fact(20));", procedures) == ["2432902008176640000"]

  def test_closure_captures_definition_environment(self, run_main):
    procedures = "make_adder(n) { return (x) -> x + n; }"
    assert run_main("let add5 = make_adder(5); print(add5(1)); print(make_adder(1)(1));", procedures) == \
        ["6", "2"]

  def test_later_rebinding_is_invisible_to_closure(self, run_main):
    body = "let x = 1; let f = () -> x; let x = 2; print(f()); print(x);"
    assert run_main(body) == ["1", "2"]

  def test_lexical_not_dynamic_scope(self, run_main):
    procedures = """
    make_reader() { let secret = 1; return () -> secret; }
    call_with(f) { let secret = 2; return f(); }
    """
    assert run_main("print(call_with(make_reader()));", procedures) == ["1"]

  def test_callee_cannot_see_caller_locals(self, run_main):
    procedures = "peek() { return local; }"
    with pytest.raises(UnboundNameError) as exc_info:
      run_main("let local = 1; peek();", procedures)
    assert exc_info.value.name == "local"

  def test_shadowing_in_nested_block(self, run_main):
    body = "let x = 5; print(x); { let x = 10; print(x); } print(x);"
    assert run_main(body) == ["5", "10", "5"]

  def test_parameter_shadows_procedure_name(self, run_main):
    procedures = "f(f) { return f + 1; }"
    assert run_main("print(f(1));", procedures) == ["2"]

  def test_higher_order_builtin_values(self, run_main):
    procedures = "apply(f, x) { return f(x); }"
    assert run_main("print(apply(head, list(4, 5)));", procedures) == ["4"]


class TestReturnSemantics:
  """Test explicit and implicit procedure results"""

  def test_return_exits_early(self, run_main):
    procedures = "f() { print(1); return 2; print(3); }"
    assert run_main("print(f());", procedures) == ["1", "2"]

  def test_return_from_nested_block_and_if(self, run_main):
    procedures = "f(n) { { if (n > 0) { return \"positive\"; } } return \"other\"; }"
    assert run_main("print(f(1)); print(f(0));", procedures) == ["positive", "other"]

  def test_return_inside_lambda_only_leaves_lambda(self, run_main):
    procedures = "f() { let g = () -> { return 1; }; g(); return 2; }"
    assert run_main("print(f());", procedures) == ["2"]

  def test_bare_return_gives_nil(self, run_main):
    assert run_main("print(f());", "f() { return; }") == ["nil"]

  def test_last_statement_value_is_result(self, run_main):
    assert run_main("print(f()); print(g());", "f() { 1 + 1; } g() { let x = 1; }") == ["2", "nil"]

  def test_expression_bodied_lambda(self, run_main):
    assert run_main("let sq = (x) -> x * x; print(sq(9));") == ["81"]


class TestRuntimeErrors:
  """Test the runtime error taxonomy"""

  def test_unbound_name(self, run_main):
    with pytest.raises(UnboundNameError, match="unknown variable \"nope\""):
      run_main("print(nope);")

  def test_arity_mismatch(self, run_main):
    with pytest.raises(ArityError) as exc_info:
      run_main("f(1, 2);", "f(x) { return x; }")
    assert exc_info.value.expected == 1
    assert exc_info.value.got == 2

  def test_builtin_arity_mismatch(self, run_main):
    with pytest.raises(ArityError):
      run_main("head(list(1), list(2));")

  def test_calling_non_function(self, run_main):
    with pytest.raises(TypeMismatchError):
      run_main("let x = 1; x(2);")

  def test_type_mismatch_in_operator(self, run_main):
    with pytest.raises(TypeMismatchError):
      run_main("print(1 + true);")

  def test_non_bool_condition(self, run_main):
    with pytest.raises(TypeMismatchError):
      run_main("if (1) { print(1); }")

  def test_equality_of_different_kinds(self, run_main):
    with pytest.raises(TypeMismatchError):
      run_main('print(1 == "1");')

  def test_division_by_zero(self, run_main):
    with pytest.raises(DivisionByZeroError):
      run_main("print(1 / 0);")

  @pytest.mark.parametrize("call", ["head(list())", "rest(list())"])
  def test_empty_sequence(self, run_main, call):
    with pytest.raises(EmptySequenceError):
      run_main(f"print({call});")

  def test_error_span_points_at_expression(self):
    with pytest.raises(TypeMismatchError) as exc_info:
      run("main() {\n  print(1 + true);\n}", "bad.ling")
    assert exc_info.value.span.filename == "bad.ling"
    assert exc_info.value.span.line == 2

  def test_output_before_failure_is_kept(self, run_main):
    with pytest.raises(EmptySequenceError) as exc_info:
      run_main("print(1); print(2); head(list()); print(3);")
    assert exc_info.value.output == ["1", "2"]

  def test_parse_and_semantic_errors_have_empty_output(self):
    with pytest.raises(LingerParseError) as parse_info:
      run("main() { print(1) }")
    assert parse_info.value.output == []
    with pytest.raises(LingerSemanticsError) as semantics_info:
      run("helper() { }")
    assert semantics_info.value.output == []


class TestRecursionLimit:
  """Test the call depth guard"""

  def test_nested_calls_in_source(self):
    output = run("main() { print(" + "list(" * 30 + "1" + ")" * 30 + "); }")
    assert output == ["[" * 30 + "1" + "]" * 30]

  def test_overly_nested_source_is_reported(self):
    with pytest.raises(LingerParseError, match="nested too deeply") as exc_info:
      run("main() { print(" + "(" * 3000 + "1" + ")" * 3000 + "); }")
    assert exc_info.value.output == []

  def test_default_depth_fits_long_lists(self):
    items = ", ".join(str(i) for i in range(600))
    output = run(f"{LIST_PROCEDURES}\nmain() {{ print(length(map((x) -> x + 1, list({items})))); }}")
    assert output == ["600"]

  def test_depth_limit(self):
    program = "down(n) { return down(n + 1); } main() { down(0); }"
    with pytest.raises(RecursionDepthError):
      run(program, max_depth=50)

  def test_deep_recursion_within_limit(self):
    program = "count(n) { if (n == 0) { return 0; } return 1 + count(n - 1); } main() { print(count(900)); }"
    assert run(program, max_depth=1000) == ["900"]

  def test_recursion_limit_restored(self):
    import sys
    before = sys.getrecursionlimit()
    run("main() { print(1); }", max_depth=2000)
    assert sys.getrecursionlimit() == before


class TestOutputStream:
  """Test streaming of printed lines"""

  def test_lines_written_as_printed(self):
    stream = io.StringIO()
    output = run("main() { print(1); print(list(2, 3)); }", stream=stream)
    assert output == ["1", "[2, 3]"]
    assert stream.getvalue() == "1\n[2, 3]\n"

  def test_interpreter_runs_are_independent(self):
    parser = create_parser()
    analyzer = create_analyzer()
    interpreter = create_interpreter()
    program = analyzer.analyze(parser.parse_string("main() { print(1); }"))
    assert interpreter.run_program(program) == ["1"]
    assert interpreter.run_program(program) == ["1"]


class TestListProperties:
  """Test filter, map and fold_left written in Linger"""

  def run_lists(self, body):
    return run(f"{LIST_PROCEDURES}\nmain() {{ {body} }}")

  def test_filter_even_numbers(self):
    output = self.run_lists("print(filter((x) -> x % 2 == 0, list(1, 2, 3, 4, 5, 6, 7, 8, 9, 10)));")
    assert output == ["[2, 4, 6, 8, 10]"]

  def test_map_squares(self):
    assert self.run_lists("print(map((x) -> x * x, list(1, 2, 3, 4)));") == ["[1, 4, 9, 16]"]

  def test_fold_left_sum(self):
    assert self.run_lists("print(fold_left((acc, cur) -> acc + cur, 0, list(1, 2, 3, 4)));") == ["10"]

  def test_fold_left_base_case(self):
    assert self.run_lists('print(fold_left((a, b) -> a + b, "start", list()));') == ["start"]

  @pytest.mark.parametrize("items", ["", "1", "3, 1, 4, 1, 5, 9, 2, 6"])
  def test_filter_preserves_order_and_is_idempotent(self, items):
    body = f"""
    let s = list({items});
    let keep = (x) -> x > 2;
    let once = filter(keep, s);
    print(once);
    print(filter(keep, once) == once);
    print(length(once) <= length(s));
    """
    output = self.run_lists(body)
    expected = [int(v) for v in items.split(",") if v.strip() and int(v) > 2]
    assert output[0] == "[" + ", ".join(str(v) for v in expected) + "]"
    assert output[1:] == ["true", "true"]

  def test_map_length_and_elements(self):
    body = """
    let s = list(5, 6, 7);
    let f = (x) -> x * 10 - 1;
    let mapped = map(f, s);
    print(length(mapped) == length(s));
    print(head(mapped) == f(head(s)));
    print(head(rest(rest(mapped))) == f(head(rest(rest(s)))));
    """
    assert self.run_lists(body) == ["true", "true", "true"]

  def test_concatenation_associativity_and_identity(self):
    body = """
    let a = list(1);
    let b = list(2, 3);
    let c = list(4);
    print((a + b) + c == a + (b + c));
    print(list() + b == b);
    print(b + list() == b);
    """
    assert self.run_lists(body) == ["true", "true", "true"]
