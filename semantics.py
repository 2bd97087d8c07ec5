"""
Linger Semantics Analysis - Pure Functional Style
Converts the CST into immutable AST dictionaries and checks program structure
"""

import sys
from typing import Any, Dict, List, Optional
from parsing import CSTNode, SourceSpan
from error_handling import LingerError
from stdlib import BUILTIN_FUNCTIONS
from utilities import NESTING_RECURSION_LIMIT, recursion_limit


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

def make_ast_node(node_type: str, value: Any, span: Optional[SourceSpan] = None) -> Dict:
  """Create an immutable AST node dictionary"""
  return {
      'type': node_type,
      'value': value,
      'span': span
  }


def make_program(procedures: Dict[str, Dict]) -> Dict:
  """Create a program: procedure name -> PROCEDURE node, with a main entry"""
  return {
      'procedures': procedures,
      'main': 'main'
  }


class LingerSemanticsError(LingerError):
  """Linger semantics analysis error"""
  kind = "Semantics error"


# ============================================================================
# NAME CHECKS
# ============================================================================

def check_binding_name(name: str, role: str, span: Optional[SourceSpan]) -> None:
  """Builtins are non-redefinable: reject them as procedure, parameter or let names"""
  if name in BUILTIN_FUNCTIONS:
    raise LingerSemanticsError(f"builtin \"{name}\" used as {role} name", span)


def check_params(params: List[str], span: Optional[SourceSpan]) -> None:
  seen = set()
  for param in params:
    check_binding_name(param, "parameter", span)
    if param in seen:
      raise LingerSemanticsError(f"duplicate parameter \"{param}\"", span)
    seen.add(param)


# ============================================================================
# EXPRESSIONS AND STATEMENTS
# ============================================================================

def analyze_cst_node(cst_node: CSTNode, debug: bool = False) -> Dict:
  """Convert one CST node (expression or statement) into an AST node"""
  node_type = cst_node.type
  span = cst_node.span

  if debug:
    print(f"Analyzing: {node_type}", file=sys.stderr)

  if node_type in ("NUMBER", "BOOLEAN", "STRING", "IDENTIFIER"):
    return make_ast_node(node_type, cst_node.value, span)
  elif node_type == "BINARY":
    left, right = cst_node.children
    return make_ast_node("OPERATION", {
        'op': cst_node.value,
        'left': analyze_cst_node(left, debug),
        'right': analyze_cst_node(right, debug)
    }, span)
  elif node_type == "UNARY":
    return make_ast_node("UNARY", {
        'op': cst_node.value,
        'operand': analyze_cst_node(cst_node.children[0], debug)
    }, span)
  elif node_type == "LAMBDA":
    check_params(cst_node.value, span)
    return make_ast_node("LAMBDA", {
        'params': list(cst_node.value),
        'body': analyze_cst_node(cst_node.children[0], debug)
    }, span)
  elif node_type == "CALL":
    callee, *args = cst_node.children
    return make_ast_node("FUNCTION_CALL", {
        'function': analyze_cst_node(callee, debug),
        'args': [analyze_cst_node(arg, debug) for arg in args]
    }, span)
  elif node_type == "BLOCK":
    return make_ast_node("BLOCK", {
        'statements': [analyze_cst_node(stmt, debug) for stmt in cst_node.children]
    }, span)
  elif node_type == "LET":
    check_binding_name(cst_node.value, "variable", span)
    return make_ast_node("LET", {
        'name': cst_node.value,
        'value': analyze_cst_node(cst_node.children[0], debug)
    }, span)
  elif node_type == "RETURN":
    value = analyze_cst_node(cst_node.children[0], debug) if cst_node.children else None
    return make_ast_node("RETURN", {'value': value}, span)
  elif node_type == "IF":
    condition, then_branch, *else_branch = cst_node.children
    return make_ast_node("IF", {
        'condition': analyze_cst_node(condition, debug),
        'then': analyze_cst_node(then_branch, debug),
        'else': analyze_cst_node(else_branch[0], debug) if else_branch else None
    }, span)
  else:
    raise LingerSemanticsError(f"unexpected syntax node {node_type}", span)


def analyze_procedure(cst_node: CSTNode, debug: bool = False) -> Dict:
  """Convert a PROCEDURE CST node, checking its name and parameters"""
  if cst_node.type != "PROCEDURE":
    raise LingerSemanticsError(f"expected procedure definition, got {cst_node.type}", cst_node.span)

  name = cst_node.value['name']
  params = cst_node.value['params']
  check_binding_name(name, "procedure", cst_node.span)
  check_params(params, cst_node.span)

  return make_ast_node("PROCEDURE", {
      'name': name,
      'params': list(params),
      'body': analyze_cst_node(cst_node.children[0], debug)
  }, cst_node.span)


# ============================================================================
# PROGRAM ANALYSIS
# ============================================================================

def analyze_program(cst_nodes: List[CSTNode], debug: bool = False) -> Dict:
  """
  Analyze a list of procedure CST nodes into a program.

  Raises LingerSemanticsError when main is missing, takes parameters,
  or any procedure name is defined twice.
  """
  procedures = {}
  for cst_node in cst_nodes:
    try:
      with recursion_limit(NESTING_RECURSION_LIMIT):
        proc = analyze_procedure(cst_node, debug)
    except RecursionError as e:
      raise LingerSemanticsError("procedure nested too deeply", cst_node.span) from e
    name = proc['value']['name']
    if name in procedures:
      if name == 'main':
        raise LingerSemanticsError("multiple main procedures found", proc['span'])
      raise LingerSemanticsError(f"procedure \"{name}\" defined more than once", proc['span'])
    procedures[name] = proc

  if 'main' not in procedures:
    raise LingerSemanticsError("main procedure not found")
  if procedures['main']['value']['params']:
    raise LingerSemanticsError("main procedure must not take parameters",
                               procedures['main']['span'])

  if debug:
    print(f"Analyzed {len(procedures)} procedures", file=sys.stderr)

  return make_program(procedures)


def format_ast(ast_node: Any, indent: int = 0) -> str:
  """Render an AST node tree for debugging"""
  pad = "  " * indent
  if isinstance(ast_node, dict) and 'type' in ast_node:
    value = ast_node['value']
    if not isinstance(value, dict):
      return f"{pad}{ast_node['type']}({value!r})\n"
    result = f"{pad}{ast_node['type']}\n"
    for key, child in value.items():
      if isinstance(child, dict):
        result += f"{pad}  {key}:\n" + format_ast(child, indent + 2)
      elif isinstance(child, list) and child and isinstance(child[0], dict):
        result += f"{pad}  {key}:\n"
        for item in child:
          result += format_ast(item, indent + 2)
      else:
        result += f"{pad}  {key}: {child!r}\n"
    return result
  return f"{pad}{ast_node!r}\n"


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

def create_analyzer(debug: bool = False):
  """Factory function returning an analyzer"""
  def analyzer(cst_nodes):
    return analyze_program(cst_nodes, debug)

  def analyzer_expression(cst_node):
    return analyze_cst_node(cst_node, debug)

  return type('Analyzer', (), {
      'analyze': lambda self, cst_nodes: analyzer(cst_nodes),
      'analyze_expression': lambda self, cst_node: analyzer_expression(cst_node),
      'debug': debug
  })()


def create_debug_analyzer():
  """Factory function returning a debug analyzer"""
  return create_analyzer(debug=True)
