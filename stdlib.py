"""
Linger Standard Library
Built-in functions and operator primitives for Linger
Pure functional style using immutable dictionaries
"""

from typing import Any, Callable, Dict, List, Optional, Tuple
import operator
from utilities import (
  int_operator,
  check_argument_kinds,
  argument_error,
  operand_error
)
from error_handling import (
  DivisionByZeroError,
  EmptySequenceError,
  TypeMismatchError
)


# Value kinds that support == and !=
EQUATABLE_TYPES = ("Int", "Bool", "String", "List", "Nil")


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================

def make_value(value: Any, type_name: str = "Unknown") -> Dict:
  """Create an immutable runtime value"""
  return {
      'value': value,
      'type': type_name
  }


def make_nil() -> Dict:
  """The unit value produced by statements and bodies without a value"""
  return make_value(None, "Nil")


def make_sequence(values) -> Dict:
  """Sequences are backed by tuples so no operation can mutate them"""
  return make_value(tuple(values), "List")


def emit_output(context: Dict, line: str) -> None:
  """Append one printed line to the run's output sink, echoing it to the stream if any"""
  context['output'].append(line)
  stream = context.get('stream')
  if stream is not None:
    stream.write(line + "\n")
    stream.flush()


# ============================================================================
# RENDERING
# ============================================================================

def render_value(value: Dict) -> str:
  """Canonical textual rendering used by print"""
  value_type = value['type']
  if value_type == "Int":
    return str(value['value'])
  elif value_type == "Bool":
    return "true" if value['value'] else "false"
  elif value_type == "String":
    return value['value']
  elif value_type == "List":
    return "[" + ", ".join(render_value(elem) for elem in value['value']) + "]"
  elif value_type == "Nil":
    return "nil"
  elif value_type == "Closure":
    name = value['value'].get('name')
    return f"<procedure {name}>" if name else "<lambda>"
  elif value_type == "Builtin":
    return f"<builtin {value['value']['name']}>"
  else:
    return f"<{value_type}>"


# ============================================================================
# SEQUENCE FUNCTIONS
# ============================================================================

def linger_list(*values: Dict) -> Dict:
  """Build a sequence from the arguments in order"""
  return make_sequence(values)


def linger_is_empty(seq: Dict) -> Dict:
  """True iff the sequence has no elements"""
  check_argument_kinds("is_empty", [seq], ["List"])
  return make_value(len(seq['value']) == 0, "Bool")


def linger_head(seq: Dict) -> Dict:
  """Get first element of a sequence"""
  check_argument_kinds("head", [seq], ["List"])
  if not seq['value']:
    raise EmptySequenceError("Cannot get head of empty list")
  return seq['value'][0]


def linger_rest(seq: Dict) -> Dict:
  """Get all but the first element of a sequence"""
  check_argument_kinds("rest", [seq], ["List"])
  if not seq['value']:
    raise EmptySequenceError("Cannot get rest of empty list")
  return make_sequence(seq['value'][1:])


def linger_is_nil(value: Dict) -> Dict:
  return make_value(value['type'] == "Nil", "Bool")


# ============================================================================
# PRINT FUNCTIONS
# ============================================================================

def linger_print(value: Dict, context: Dict) -> Dict:
  """Write the rendering of a value as one output line; returns the value"""
  emit_output(context, render_value(value))
  return value


# ============================================================================
# COMPARISON FUNCTIONS
# ============================================================================

def values_equal(x: Dict, y: Dict) -> bool:
  """Structural equality; nested values of different kinds are simply unequal"""
  if x['type'] != y['type']:
    return False
  if x['type'] not in EQUATABLE_TYPES:
    raise TypeMismatchError(f"Cannot compare values of type {x['type']}")
  if x['type'] == "List":
    return (len(x['value']) == len(y['value']) and
            all(values_equal(a, b) for a, b in zip(x['value'], y['value'])))
  return x['value'] == y['value']


def linger_eq(x: Dict, y: Dict) -> Dict:
  """Equality comparison"""
  if x['type'] != y['type']:
    raise operand_error("compare", x, y)
  return make_value(values_equal(x, y), "Bool")


def linger_ne(x: Dict, y: Dict) -> Dict:
  """Not equal comparison"""
  result = linger_eq(x, y)
  return make_value(not result['value'], "Bool")


# Ordering is defined on integers only
_linger_lt_impl = int_operator(operator.lt, "compare", "Bool")
_linger_gt_impl = int_operator(operator.gt, "compare", "Bool")
_linger_le_impl = int_operator(operator.le, "compare", "Bool")
_linger_ge_impl = int_operator(operator.ge, "compare", "Bool")


def linger_lt(x: Dict, y: Dict) -> Dict:
  """Less than comparison"""
  return _linger_lt_impl(x, y, make_value)


def linger_gt(x: Dict, y: Dict) -> Dict:
  """Greater than comparison"""
  return _linger_gt_impl(x, y, make_value)


def linger_le(x: Dict, y: Dict) -> Dict:
  """Less than or equal comparison"""
  return _linger_le_impl(x, y, make_value)


def linger_ge(x: Dict, y: Dict) -> Dict:
  """Greater than or equal comparison"""
  return _linger_ge_impl(x, y, make_value)


# ============================================================================
# ARITHMETIC FUNCTIONS
# ============================================================================

def linger_add(x: Dict, y: Dict) -> Dict:
  """Addition for integers, concatenation for sequences and strings"""
  if x['type'] == "Int" and y['type'] == "Int":
    return make_value(x['value'] + y['value'], "Int")
  elif x['type'] == "List" and y['type'] == "List":
    return make_sequence(x['value'] + y['value'])
  elif x['type'] == "String" and y['type'] == "String":
    return make_value(x['value'] + y['value'], "String")
  else:
    raise operand_error("add", x, y)


_linger_sub_impl = int_operator(operator.sub, "subtract")
_linger_mul_impl = int_operator(operator.mul, "multiply")


def linger_sub(x: Dict, y: Dict) -> Dict:
  """Subtraction"""
  return _linger_sub_impl(x, y, make_value)


def linger_mul(x: Dict, y: Dict) -> Dict:
  """Multiplication"""
  return _linger_mul_impl(x, y, make_value)


def truncated_divmod(a: int, b: int) -> Tuple[int, int]:
  """Quotient rounded toward zero and the matching remainder (sign of the dividend)"""
  quotient = abs(a) // abs(b)
  if (a < 0) != (b < 0):
    quotient = -quotient
  return quotient, a - quotient * b


def linger_div(x: Dict, y: Dict) -> Dict:
  """Integer division, truncating toward zero"""
  if x['type'] != "Int" or y['type'] != "Int":
    raise operand_error("divide", x, y)
  if y['value'] == 0:
    raise DivisionByZeroError("Division by zero")
  return make_value(truncated_divmod(x['value'], y['value'])[0], "Int")


def linger_mod(x: Dict, y: Dict) -> Dict:
  """Remainder with the sign of the dividend"""
  if x['type'] != "Int" or y['type'] != "Int":
    raise operand_error("compute modulo of", x, y)
  if y['value'] == 0:
    raise DivisionByZeroError("Modulo by zero")
  return make_value(truncated_divmod(x['value'], y['value'])[1], "Int")


# ============================================================================
# UNARY FUNCTIONS
# ============================================================================

def linger_neg(x: Dict) -> Dict:
  if x['type'] != "Int":
    raise argument_error("-", 1, "Int", x)
  return make_value(-x['value'], "Int")


def linger_not(x: Dict) -> Dict:
  if x['type'] != "Bool":
    raise argument_error("!", 1, "Bool", x)
  return make_value(not x['value'], "Bool")


# ============================================================================
# BUILT-IN FUNCTION REGISTRY
# ============================================================================

def make_builtin_function(name: str, func: Callable, arity: Optional[int],
                          type_signature: str = "", needs_context: bool = False) -> Dict:
  """Create a built-in function value; arity None means variadic"""
  return make_value({
      'name': name,
      'func': func,
      'arity': arity,
      'type_signature': type_signature,
      'needs_context': needs_context
  }, "Builtin")


# Fixed, non-redefinable builtins
BUILTIN_FUNCTIONS: Dict[str, Dict] = {
    "list": make_builtin_function("list", linger_list, None, "a... -> List a"),
    "is_empty": make_builtin_function("is_empty", linger_is_empty, 1, "List a -> Bool"),
    "head": make_builtin_function("head", linger_head, 1, "List a -> a"),
    "rest": make_builtin_function("rest", linger_rest, 1, "List a -> List a"),
    "print": make_builtin_function("print", linger_print, 1, "a -> a", needs_context=True),
    "is_nil": make_builtin_function("is_nil", linger_is_nil, 1, "a -> Bool"),
}


def list_builtin_functions() -> List[str]:
  """List all available built-in functions"""
  return list(BUILTIN_FUNCTIONS.keys())
