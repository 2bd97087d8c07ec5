"""
Utilities module for the Linger interpreter
Kind checks, error builders and the integer operator factory used by the builtins
"""

from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List
import sys

from error_handling import ArityError, TypeMismatchError


# Stack room for parsing and analyzing deeply nested source
NESTING_RECURSION_LIMIT = 10000


# ==================== VALUE KINDS ====================

def kind_of(val: Any) -> str:
  """Kind tag of a runtime value ('Int', 'List', ...), or 'Unknown'"""
  return val.get('type', 'Unknown') if isinstance(val, dict) else 'Unknown'


# ==================== ERROR BUILDERS ====================

def operand_error(verb: str, left: Dict, right: Dict) -> TypeMismatchError:
  """Binary operator applied to a pair of kinds outside its domain"""
  return TypeMismatchError(f"Cannot {verb} {kind_of(left)} and {kind_of(right)}")


def argument_error(func_name: str, position: int, expected: str, actual: Dict) -> TypeMismatchError:
  return TypeMismatchError(
    f"{func_name} expected {expected} as argument {position}, instead got {kind_of(actual)}"
  )


# ==================== ARGUMENT CHECKS ====================

def check_argument_kinds(func_name: str, args: List[Dict], kinds: List[str]) -> None:
  """
  Check a builtin's arguments against the kinds it accepts.

  'Any' matches every kind. Raises ArityError when the counts differ and
  TypeMismatchError for the first argument of the wrong kind.
  """
  if len(args) != len(kinds):
    raise ArityError(func_name, len(kinds), len(args))

  for position, (arg, kind) in enumerate(zip(args, kinds), start=1):
    if kind != 'Any' and kind_of(arg) != kind:
      raise argument_error(func_name, position, kind, arg)


# ==================== OPERATOR FACTORY ====================

def int_operator(op: Callable[[int, int], Any], verb: str, result_kind: str = "Int") -> Callable[[Dict, Dict, Callable], Dict]:
  """
  Build a primitive for an operator defined only on two Int operands.

  The returned function takes the two operand values and the value
  constructor, and wraps op's result as result_kind:

    lt = int_operator(operator.lt, "compare", "Bool")
    lt(one, two, make_value)  ->  {'value': True, 'type': 'Bool'}
  """
  def primitive(x: Dict, y: Dict, make_value: Callable) -> Dict:
    if kind_of(x) != "Int" or kind_of(y) != "Int":
      raise operand_error(verb, x, y)
    return make_value(op(x['value'], y['value']), result_kind)

  return primitive


# ==================== STACK LIMITS ====================

@contextmanager
def recursion_limit(limit: int) -> Iterator[None]:
  """Raise the Python recursion limit to at least limit while the block runs"""
  previous = sys.getrecursionlimit()
  sys.setrecursionlimit(max(previous, limit))
  try:
    yield
  finally:
    sys.setrecursionlimit(previous)
