"""
Error taxonomy for Linger and enhanced parse error reporting
Parse errors are rebuilt from pyparsing exceptions with a source excerpt and hints
"""

from typing import Any, List, Optional
from pyparsing import ParseBaseException
import re


# ============================================================================
# ERROR CLASSES
# ============================================================================

class LingerError(Exception):
    """Base class for every failure reported by the Linger toolchain"""
    kind = "Error"

    def __init__(self, message: str, span: Optional[Any] = None):
        self.message = message
        self.span = span
        super().__init__(self._format_error())

    def _format_error(self) -> str:
        if self.span:
            return f"{self.kind} at {self.span}: {self.message}"
        return f"{self.kind}: {self.message}"


class LingerRuntimeError(LingerError):
    """Evaluation failure; aborts the current program run"""
    kind = "Runtime error"


class UnboundNameError(LingerRuntimeError):
    """Identifier not found in any enclosing frame"""
    kind = "Unbound name"

    def __init__(self, name: str, span: Optional[Any] = None):
        self.name = name
        super().__init__(f"unknown variable \"{name}\"", span)


class TypeMismatchError(LingerRuntimeError):
    """Operator or builtin applied to incompatible value kinds"""
    kind = "Type mismatch"


class ArityError(LingerRuntimeError):
    """Call supplies the wrong number of arguments"""
    kind = "Arity mismatch"

    def __init__(self, func_name: str, expected: int, got: int, span: Optional[Any] = None):
        self.func_name = func_name
        self.expected = expected
        self.got = got
        super().__init__(
            f"procedure {func_name} expected {expected} args, instead got {got}", span)


class EmptySequenceError(LingerRuntimeError):
    """head or rest applied to the empty sequence"""
    kind = "Empty sequence"


class DivisionByZeroError(LingerRuntimeError):
    kind = "Division by zero"


class RecursionDepthError(LingerRuntimeError):
    """Call depth exceeded the configured limit"""
    kind = "Recursion limit"


# ============================================================================
# PARSE ERROR DETAILS
# ============================================================================

RESERVED_WORD_PATTERN = re.compile(r"(let|return|if|else|true|false)\b")
NEXT_TOKEN_PATTERN = re.compile(r"\s*(\"[^\"\n]*\"?|\w+|->|=>|&&|\|\||[<>=!]=|\S)")


def source_excerpt(source_text: str, line_num: int, col_num: int, radius: int = 2) -> str:
    """Numbered source lines around line_num with a caret under col_num"""
    lines = source_text.splitlines() or [""]
    first = max(1, line_num - radius)
    last = min(len(lines), line_num + radius)
    width = len(str(last))

    rendered = []
    for number in range(first, last + 1):
        rendered.append(f"  {number:>{width}} | {lines[number - 1]}")
        if number == line_num:
            rendered.append(f"  {'':>{width}} | {' ' * (col_num - 1)}^")
    return "\n".join(rendered)


def expected_items(exc: ParseBaseException) -> List[str]:
    """What pyparsing was looking for, taken from its 'Expected ...' message"""
    match = re.match(r"Expected\s+(.+?)(?:,\s+found\b.*)?$", exc.msg or "")
    return [match.group(1)] if match else []


def found_token(source_text: str, loc: int) -> Optional[str]:
    """The token starting at loc, or None at the end of input"""
    match = NEXT_TOKEN_PATTERN.match(source_text, loc)
    return match.group(1) if match else None


def suggest_fixes(expected: List[str], found: Optional[str], source_text: str) -> List[str]:
    """Hints for the mistakes that are easy to make in Linger source"""
    expected_text = " ".join(expected)
    hints = []

    if "';'" in expected_text:
        hints.append("statements end with ';' - check for a missing semicolon")
    if "'}'" in expected_text or (found is None and source_text.count("{") > source_text.count("}")):
        hints.append("check that every '{' has a matching '}'")
    if found == "=>":
        hints.append("anonymous functions use '->', as in (x) -> x * 2")
    if found and RESERVED_WORD_PATTERN.fullmatch(found):
        hints.append(f"'{found}' is a reserved word and cannot be used as a name")
    if not source_text.strip():
        hints.append("a program needs at least a main() procedure")
    return hints


# ============================================================================
# PARSE ERROR CLASS
# ============================================================================

class LingerParseError(LingerError):
    """Syntax error with the offending location, nearby source and hints"""
    kind = "Parse error"

    def __init__(self, message: str, line: int = 0, column: int = 0,
                 expected: Optional[List[str]] = None, found: Optional[str] = None,
                 excerpt: str = "", suggestions: Optional[List[str]] = None,
                 span: Optional[Any] = None):
        self.line = line
        self.column = column
        self.expected = expected or []
        self.found = found
        self.excerpt = excerpt
        self.suggestions = suggestions or []
        super().__init__(message, span)

    def __str__(self) -> str:
        if not self.line:
            return super().__str__()

        where = f"line {self.line}, column {self.column}"
        if self.span:
            where = f"{self.span.filename}, {where}"
        report = [f"Parse error in {where}: {self.message}"]
        if self.expected:
            report.append(f"  expected {', '.join(self.expected)}")
        report.append(f"  found {self.found!r}" if self.found else "  found end of input")
        if self.excerpt:
            report.append(self.excerpt)
        report.extend(f"  hint: {hint}" for hint in self.suggestions)
        return "\n".join(report)


class LingerErrorHandler:
    """Builds LingerParseError values for one source text"""

    def __init__(self, source_text: str, filename: str = "<input>"):
        self.source_text = source_text
        self.filename = filename

    def enhance_parse_exception(self, exc: ParseBaseException, span: Optional[Any] = None) -> LingerParseError:
        """Convert a pyparsing exception into a LingerParseError"""
        expected = expected_items(exc)
        found = found_token(self.source_text, exc.loc)
        return LingerParseError(
            message=exc.msg,
            line=exc.lineno,
            column=exc.column,
            expected=expected,
            found=found,
            excerpt=source_excerpt(self.source_text, exc.lineno, exc.column),
            suggestions=suggest_fixes(expected, found, self.source_text),
            span=span
        )
