"""
Linger Interpreter - Pure Functional Style
Values and environments are immutable dictionaries
The only side effect, print, goes through an explicit output sink in the execution context
"""

from typing import Any, Dict, List, Optional, Tuple
import sys

from parsing import create_parser
from semantics import create_analyzer
from error_handling import (
  LingerError,
  LingerRuntimeError,
  UnboundNameError,
  TypeMismatchError,
  ArityError,
  RecursionDepthError
)
from utilities import recursion_limit
from stdlib import (
  make_value,
  make_nil,
  BUILTIN_FUNCTIONS,
  # Operators
  linger_add as stdlib_add_impl,
  linger_sub as stdlib_sub_impl,
  linger_mul as stdlib_mul_impl,
  linger_div as stdlib_div_impl,
  linger_mod as stdlib_mod_impl,
  linger_eq as stdlib_eq_impl,
  linger_ne as stdlib_ne_impl,
  linger_lt as stdlib_lt_impl,
  linger_gt as stdlib_gt_impl,
  linger_le as stdlib_le_impl,
  linger_ge as stdlib_ge_impl,
  linger_neg as stdlib_neg_impl,
  linger_not as stdlib_not_impl,
)


# Recursive list procedures use one call level per element
DEFAULT_MAX_DEPTH = 1000

# Upper bound of interpreter frames used by one Linger call (block, if, return, operands)
FRAMES_PER_CALL = 30


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

def make_runtime_env(parent: Optional[Dict] = None, bindings: Optional[Dict] = None) -> Dict:
  """Create an immutable runtime environment node"""
  return {
      'parent': parent,
      'bindings': bindings or {}
  }


def make_closure(params: List[str], body: Dict, closure_env: Dict, name: Optional[str] = None) -> Dict:
  """Create a closure holding a reference to its defining environment node"""
  return make_value({
      'params': params,
      'body': body,
      'closure_env': closure_env,
      'name': name
  }, "Closure")


def make_return_signal(value: Dict) -> Dict:
  """Wraps the value of a return statement while it travels to the call boundary"""
  return {
      'type': 'Return',
      'value': value
  }


def is_return(result: Dict) -> bool:
  return result['type'] == 'Return'


def unwrap_return(result: Dict) -> Dict:
  return result['value'] if is_return(result) else result


def make_execution_context(stream: Any = None, max_depth: int = DEFAULT_MAX_DEPTH) -> Dict:
  """Create an execution context: output sink, optional echo stream and call depth"""
  return {
      'output': [],
      'stream': stream,
      'depth': 0,
      'max_depth': max_depth
  }


# ============================================================================
# ENVIRONMENT OPERATIONS
# ============================================================================

def env_bind_value(env: Dict, name: str, value: Dict) -> Dict:
  """Return a new environment node layered on env with name bound to value"""
  return make_runtime_env(env, {name: value})


def env_extend(env: Dict, bindings: Dict) -> Dict:
  """Return a new frame holding several bindings, layered on env"""
  return make_runtime_env(env, dict(bindings))


def env_lookup_value(env: Dict, name: str, span: Any = None) -> Dict:
  """Look up a value in the environment chain, innermost frame first"""
  if name in env['bindings']:
    return env['bindings'][name]
  elif env['parent']:
    return env_lookup_value(env['parent'], name, span)
  raise UnboundNameError(name, span)


# ============================================================================
# BUILT-IN OPERATIONS
# ============================================================================

BUILTIN_OPERATORS = {
    '+': stdlib_add_impl,
    '-': stdlib_sub_impl,
    '*': stdlib_mul_impl,
    '/': stdlib_div_impl,
    '%': stdlib_mod_impl,
    '==': stdlib_eq_impl,
    '!=': stdlib_ne_impl,
    '<': stdlib_lt_impl,
    '>': stdlib_gt_impl,
    '<=': stdlib_le_impl,
    '>=': stdlib_ge_impl,
}

UNARY_OPERATORS = {
    '-': stdlib_neg_impl,
    '!': stdlib_not_impl,
}

LOGICAL_OPERATORS = ('&&', '||')


def create_builtin_runtime_env() -> Dict:
  """Create the outermost environment holding the builtin functions"""
  return make_runtime_env(None, dict(BUILTIN_FUNCTIONS))


def create_global_env(program: Dict) -> Dict:
  """
  Bind every procedure of the program in one global frame.

  Procedure closures capture the global frame itself so procedures can call
  themselves and each other. The frame is filled before any evaluation starts
  and never changes afterwards.
  """
  global_env = make_runtime_env(create_builtin_runtime_env(), {})
  for name, proc in program['procedures'].items():
    proc_value = proc['value']
    global_env['bindings'][name] = make_closure(
        proc_value['params'], proc_value['body'], global_env, name)
  return global_env


# ============================================================================
# EVALUATION FUNCTIONS
# ============================================================================

def eval_ast(ast_node: Dict, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Tuple[Dict, Dict]:
  """
  Evaluate an AST node and return (result_value, updated_environment).
  Only LET changes the environment; the result of a RETURN is a return signal.
  """
  if context is None:
    context = make_execution_context()

  node_type = ast_node['type']

  if debug:
    print(f"Evaluating: {node_type}", file=sys.stderr)

  if node_type == "NUMBER":
    return make_value(ast_node['value'], "Int"), env
  elif node_type == "BOOLEAN":
    return make_value(ast_node['value'], "Bool"), env
  elif node_type == "STRING":
    return make_value(ast_node['value'], "String"), env
  elif node_type == "IDENTIFIER":
    return env_lookup_value(env, ast_node['value'], ast_node['span']), env
  elif node_type == "OPERATION":
    return eval_operation(ast_node, env, debug, context)
  elif node_type == "UNARY":
    return eval_unary(ast_node, env, debug, context)
  elif node_type == "LAMBDA":
    return eval_lambda(ast_node, env, debug, context)
  elif node_type == "FUNCTION_CALL":
    return eval_function_call(ast_node, env, debug, context)
  elif node_type == "IF":
    return eval_if(ast_node, env, debug, context)
  elif node_type == "BLOCK":
    return eval_block(ast_node, env, debug, context)
  elif node_type == "LET":
    return eval_let(ast_node, env, debug, context)
  elif node_type == "RETURN":
    return eval_return(ast_node, env, debug, context)
  else:
    raise LingerRuntimeError(f"Unknown node type: {node_type}", ast_node.get('span'))


def eval_expression(ast_node: Dict, env: Dict, debug: bool, context: Dict) -> Dict:
  """Evaluate a node for its value alone"""
  value, _ = eval_ast(ast_node, env, debug, context)
  return value


def eval_operation(ast_node: Dict, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Tuple[Dict, Dict]:
  """Evaluate binary operation: left operand, then right operand, then the primitive"""
  value_dict = ast_node['value']
  op = value_dict['op']

  if op in LOGICAL_OPERATORS:
    return eval_logical(ast_node, env, debug, context), env

  left_val = eval_expression(value_dict['left'], env, debug, context)
  right_val = eval_expression(value_dict['right'], env, debug, context)

  if op not in BUILTIN_OPERATORS:
    raise LingerRuntimeError(f"Unknown operation: {op}", ast_node['span'])
  try:
    return BUILTIN_OPERATORS[op](left_val, right_val), env
  except LingerRuntimeError as e:
    raise with_span(e, ast_node['span'])


def eval_logical(ast_node: Dict, env: Dict, debug: bool, context: Dict) -> Dict:
  """&& and || evaluate the right operand only when the left does not decide"""
  value_dict = ast_node['value']
  op = value_dict['op']

  left_val = require_bool(eval_expression(value_dict['left'], env, debug, context), op, ast_node)
  if (op == '&&' and not left_val['value']) or (op == '||' and left_val['value']):
    return left_val
  return require_bool(eval_expression(value_dict['right'], env, debug, context), op, ast_node)


def eval_unary(ast_node: Dict, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Tuple[Dict, Dict]:
  value_dict = ast_node['value']
  operand = eval_expression(value_dict['operand'], env, debug, context)
  try:
    return UNARY_OPERATORS[value_dict['op']](operand), env
  except LingerRuntimeError as e:
    raise with_span(e, ast_node['span'])


def eval_lambda(ast_node: Dict, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Tuple[Dict, Dict]:
  """Evaluate lambda expression: capture the current environment node"""
  value_dict = ast_node['value']
  return make_closure(value_dict['params'], value_dict['body'], env), env


def eval_function_call(ast_node: Dict, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Tuple[Dict, Dict]:
  """Evaluate callee, then arguments left to right in the caller's environment, then apply"""
  value_dict = ast_node['value']

  func_val = eval_expression(value_dict['function'], env, debug, context)
  args = [eval_expression(arg_ast, env, debug, context) for arg_ast in value_dict['args']]

  return apply_function(func_val, args, debug, context, ast_node['span']), env


def apply_function(func_val: Dict, args: List[Dict], debug: bool = False,
                   context: Optional[Dict] = None, span: Any = None) -> Dict:
  """Apply a closure or builtin to already evaluated arguments"""
  if context is None:
    context = make_execution_context()

  if func_val['type'] == 'Closure':
    closure = func_val['value']
    params = closure['params']
    name = closure['name'] or '<lambda>'
    if len(args) != len(params):
      raise ArityError(name, len(params), len(args), span)

    depth = context['depth'] + 1
    if depth > context['max_depth']:
      raise RecursionDepthError(
          f"call depth exceeded {context['max_depth']} while calling {name}", span)

    # The new frame sits on the closure's environment, not the caller's
    call_env = env_extend(closure['closure_env'], zip(params, args))
    call_context = {**context, 'depth': depth}
    result, _ = eval_ast(closure['body'], call_env, debug, call_context)
    return unwrap_return(result)

  elif func_val['type'] == 'Builtin':
    builtin = func_val['value']
    arity = builtin['arity']
    if arity is not None and len(args) != arity:
      raise ArityError(builtin['name'], arity, len(args), span)
    try:
      if builtin['needs_context']:
        return builtin['func'](*args, context)
      return builtin['func'](*args)
    except LingerRuntimeError as e:
      raise with_span(e, span)

  else:
    raise TypeMismatchError(f"Cannot call a value of type {func_val['type']}", span)


def eval_if(ast_node: Dict, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Tuple[Dict, Dict]:
  """Evaluate exactly one branch, chosen by a Bool condition"""
  value_dict = ast_node['value']
  condition = require_bool(eval_expression(value_dict['condition'], env, debug, context), 'if', ast_node)

  if condition['value']:
    branch = value_dict['then']
  elif value_dict['else'] is not None:
    branch = value_dict['else']
  else:
    return make_nil(), env

  result, _ = eval_ast(branch, env, debug, context)
  return result, env


def eval_block(ast_node: Dict, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Tuple[Dict, Dict]:
  """
  Evaluate statements in order. Bindings made inside the block are dropped at
  its end; a return signal stops the block and is passed outward unchanged.
  """
  block_env = env
  result = make_nil()
  for statement in ast_node['value']['statements']:
    result, block_env = eval_ast(statement, block_env, debug, context)
    if is_return(result):
      break
  return result, env


def eval_let(ast_node: Dict, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Tuple[Dict, Dict]:
  """Evaluate let: layer a new frame for the rest of the block"""
  value_dict = ast_node['value']
  value = eval_expression(value_dict['value'], env, debug, context)
  return make_nil(), env_bind_value(env, value_dict['name'], value)


def eval_return(ast_node: Dict, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Tuple[Dict, Dict]:
  value_ast = ast_node['value']['value']
  value = eval_expression(value_ast, env, debug, context) if value_ast is not None else make_nil()
  return make_return_signal(value), env


# ============================================================================
# HELPERS
# ============================================================================

def require_bool(value: Dict, where: str, ast_node: Dict) -> Dict:
  if value['type'] != 'Bool':
    raise TypeMismatchError(f"{where} expected boolean value, instead got {value['type']}",
                            ast_node['span'])
  return value


def with_span(error: LingerRuntimeError, span: Any) -> LingerRuntimeError:
  """Attach the location of the offending expression when the error has none yet"""
  if error.span is None and span is not None:
    error.span = span
    error.args = (error._format_error(),)
  return error


# ============================================================================
# PROGRAM EVALUATION
# ============================================================================

def interpret_program(program: Dict, debug: bool = False, context: Optional[Dict] = None) -> Dict:
  """Run main of an analyzed program and return its value"""
  if context is None:
    context = make_execution_context()

  global_env = create_global_env(program)
  main_closure = env_lookup_value(global_env, program['main'])
  return apply_function(main_closure, [], debug, context, program['procedures'][program['main']]['span'])


def run(program_text: str, filename: str = "<input>", debug: bool = False,
        stream: Any = None, max_depth: int = DEFAULT_MAX_DEPTH) -> List[str]:
  """
  Parse, analyze and run a Linger program.

  Returns the printed lines in order. On failure the LingerError propagates with
  an `output` attribute holding the lines printed before the failure point.
  """
  parser = create_parser(debug)
  analyzer = create_analyzer(debug)
  interpreter = create_interpreter(debug, max_depth)

  if debug:
    print(f"Parsing {filename}...", file=sys.stderr)
  try:
    cst_nodes = parser.parse_string(program_text, filename)
    program = analyzer.analyze(cst_nodes)
  except LingerError as e:
    e.output = []
    raise

  return interpreter.run_program(program, stream)


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

def create_interpreter(debug: bool = False, max_depth: int = DEFAULT_MAX_DEPTH):
  """Factory function returning an interpreter"""
  def run_program(program, stream=None):
    context = make_execution_context(stream, max_depth)
    try:
      with recursion_limit(max_depth * FRAMES_PER_CALL + 1000):
        interpret_program(program, debug, context)
    except RecursionError as e:
      error = RecursionDepthError("interpreter stack exhausted")
      error.output = context['output']
      raise error from e
    except LingerRuntimeError as e:
      e.output = context['output']
      raise
    return context['output']

  return type('Interpreter', (), {
      'run_program': lambda self, program, stream=None: run_program(program, stream),
      'debug': debug,
      'max_depth': max_depth
  })()


def create_debug_interpreter(max_depth: int = DEFAULT_MAX_DEPTH):
  """Factory function returning a debug interpreter"""
  return create_interpreter(debug=True, max_depth=max_depth)
