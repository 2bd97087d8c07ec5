"""
Linger Programming Language - Main Entry Point
A small functional language with lexical closures and immutable sequences
"""

import sys
import argparse
from pathlib import Path

from parsing import create_parser, create_debug_parser, LingerParseError, pretty_print_cst
from semantics import create_analyzer, create_debug_analyzer, LingerSemanticsError, format_ast
from interpreter import create_interpreter, create_debug_interpreter, LingerRuntimeError, DEFAULT_MAX_DEPTH
from stdlib import BUILTIN_FUNCTIONS, list_builtin_functions


VERSION = "Linger v0.1.0"


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      prog='linger',
      description='Linger Programming Language - procedures, closures and immutable lists',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s script.ling                 # Run a Linger script
  %(prog)s --parse script.ling         # Parse and show CST
  %(prog)s --analyze script.ling       # Parse, analyze and show AST
  %(prog)s --debug script.ling         # Run with trace output on stderr
  %(prog)s --max-depth 5000 deep.ling  # Allow deeper recursion
        """
  )

  parser.add_argument(
      'script',
      nargs='?',
      help='Linger script file to execute'
  )

  parser.add_argument(
      '--parse',
      action='store_true',
      help='Parse file and show CST (for debugging)'
  )

  parser.add_argument(
      '--analyze',
      action='store_true',
      help='Parse and analyze file, show AST (for debugging)'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Enable debug output for all stages'
  )

  parser.add_argument(
      '--max-depth',
      type=int,
      default=DEFAULT_MAX_DEPTH,
      help=(f'Maximum procedure call depth (default: {DEFAULT_MAX_DEPTH}); recursive list '
            'procedures such as map need one level per element')
  )

  parser.add_argument(
      '--version',
      action='version',
      version=VERSION
  )

  return parser


def report_file_error(script_path: str, error: Exception) -> None:
  """Report an unreadable script on stderr and exit"""
  if isinstance(error, FileNotFoundError):
    print(f"Error: Script file '{script_path}' not found", file=sys.stderr)
    print("  Hint: Check the file path and make sure the file exists", file=sys.stderr)
  elif isinstance(error, PermissionError):
    print(f"Error: Permission denied reading '{script_path}'", file=sys.stderr)
  else:
    print(f"Error: Cannot read '{script_path}': {error}", file=sys.stderr)
  sys.exit(1)


def parse_file(script_path: str, debug: bool = False) -> None:
  """Parse a Linger script file and show the CST"""
  parser = create_debug_parser() if debug else create_parser()
  try:
    cst_nodes = parser.parse_file(script_path)
  except OSError as e:
    report_file_error(script_path, e)
  except LingerParseError as e:
    print(f"Parse error in '{script_path}': {e}", file=sys.stderr)
    sys.exit(1)

  print(f"Parsed {len(cst_nodes)} procedures:")
  print("=" * 50)
  for node in cst_nodes:
    print()
    print(pretty_print_cst(node), end="")


def analyze_file(script_path: str, debug: bool = False) -> None:
  """Parse and analyze a Linger script file and show the AST"""
  parser = create_debug_parser() if debug else create_parser()
  analyzer = create_debug_analyzer() if debug else create_analyzer()
  try:
    program = analyzer.analyze(parser.parse_file(script_path))
  except OSError as e:
    report_file_error(script_path, e)
  except LingerParseError as e:
    print(f"Parse error in '{script_path}': {e}", file=sys.stderr)
    sys.exit(1)
  except LingerSemanticsError as e:
    print(f"Semantic analysis error in '{script_path}': {e}", file=sys.stderr)
    sys.exit(1)

  print(f"Analyzed {len(program['procedures'])} procedures:")
  print("=" * 50)
  for proc in program['procedures'].values():
    print()
    print(format_ast(proc), end="")


def run_script_file(script_path: str, debug: bool = False, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
  """Run a Linger script file, streaming printed lines to stdout"""
  parser = create_debug_parser() if debug else create_parser()
  analyzer = create_debug_analyzer() if debug else create_analyzer()
  interpreter = create_debug_interpreter(max_depth) if debug else create_interpreter(max_depth=max_depth)

  try:
    if debug:
      print(f"Parsing {script_path}...", file=sys.stderr)
    program = analyzer.analyze(parser.parse_file(script_path))
    interpreter.run_program(program, sys.stdout)

  except OSError as e:
    report_file_error(script_path, e)
  except LingerParseError as e:
    print(f"Parse error in '{script_path}': {e}", file=sys.stderr)
    sys.exit(1)
  except LingerSemanticsError as e:
    print(f"Semantic analysis error in '{script_path}': {e}", file=sys.stderr)
    sys.exit(1)
  except LingerRuntimeError as e:
    print(f"{e.kind} in '{script_path}': {e.message}", file=sys.stderr)
    if e.span:
      print(f"  at {e.span}", file=sys.stderr)
      if getattr(e.span, 'text', ''):
        print(f"    {e.span.text}", file=sys.stderr)
    sys.exit(1)


def show_language_info() -> None:
  """Show Linger language information"""
  print("Linger Programming Language")
  print("=" * 50)
  print("Procedures, anonymous functions with lexical closures,")
  print("immutable lists, integers, booleans and strings.")
  print()
  print("Builtins:")
  for name in list_builtin_functions():
    print(f"  {name} : {BUILTIN_FUNCTIONS[name]['value']['type_signature']}")
  print()


def main() -> None:
  """Main entry point for Linger"""
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args()

  if not args.script:
    arg_parser.print_help()
    print()
    show_language_info()
    return

  if not Path(args.script).exists():
    print(f"Error: Script file '{args.script}' does not exist", file=sys.stderr)
    sys.exit(1)

  if args.max_depth < 1:
    arg_parser.error("--max-depth must be at least 1")

  if args.parse:
    parse_file(args.script, debug=args.debug)
  elif args.analyze:
    analyze_file(args.script, debug=args.debug)
  else:
    run_script_file(args.script, debug=args.debug, max_depth=args.max_depth)


if __name__ == "__main__":
  main()
