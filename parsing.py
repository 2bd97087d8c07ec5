"""
Linger Programming Language Parser
Grammar for Linger source text with CST preservation and source spans
"""

from typing import Any, Dict, Iterator, List, Optional
from dataclasses import asdict, dataclass, field

try:
    from pyparsing import (
        Forward, Group, Keyword, Literal, Opt, ParseBaseException, ParserElement,
        ParseFatalException, Regex, StringEnd, Suppress, ZeroOrMore, DelimitedList,
        OpAssoc, infix_notation, one_of, dbl_slash_comment, col, lineno, line
    )
    # Enable packrat parsing for performance
    ParserElement.enable_packrat()
except ImportError:
    raise ImportError("pyparsing library not found. Install with: pip install pyparsing")

from error_handling import LingerErrorHandler, LingerParseError
from utilities import NESTING_RECURSION_LIMIT, recursion_limit


RESERVED_WORDS = frozenset(["let", "return", "if", "else", "true", "false"])

# Backslash escapes allowed in string literals
STRING_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "0": "\0", "\\": "\\", "\"": "\"", "'": "'"}


@dataclass(frozen=True)
class SourceSpan:
    """Source location information for preserving CST"""
    filename: str
    line: int
    column: int
    text: str = ""

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}:{self.column}"


@dataclass(frozen=True)
class CSTNode:
    """Concrete Syntax Tree node preserving all source information"""
    type: str
    value: Any
    children: List['CSTNode'] = field(default_factory=list)
    span: Optional[SourceSpan] = None

    def __str__(self) -> str:
        if self.children:
            children_str = ", ".join(str(child) for child in self.children)
            return f"{self.type}({self.value}, [{children_str}])"
        return f"{self.type}({self.value})"


class LingerGrammar:
    """Linger grammar definition using pyparsing"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.filename = "<input>"
        self._setup_grammar()

    def _span(self, s: str, loc: int) -> SourceSpan:
        return SourceSpan(self.filename, lineno(loc, s), col(loc, s), line(loc, s).strip())

    def _setup_grammar(self):
        """Setup the Linger grammar: procedures, statements and expressions"""

        # Forward declarations for recursive structures
        expression = Forward()
        statement = Forward()
        if_statement = Forward()

        # Keywords
        let_kw = Suppress(Keyword("let"))
        return_kw = Keyword("return")
        if_kw = Suppress(Keyword("if"))
        else_kw = Suppress(Keyword("else"))

        lparen, rparen = Suppress("("), Suppress(")")
        lbrace, rbrace = Suppress("{"), Suppress("}")
        semicolon = Suppress(";")
        arrow = Suppress(Literal("->"))

        # Names (raw strings) and identifier references (CST nodes)
        name = Regex(r'[A-Za-z_][A-Za-z0-9_]*').add_condition(
            lambda t: t[0] not in RESERVED_WORDS
        ).set_name("name")
        identifier = name.copy().add_parse_action(
            lambda s, loc, t: CSTNode("IDENTIFIER", t[0], [], self._span(s, loc))
        )
        param_list = Group(lparen + Opt(DelimitedList(name)) + rparen)

        # Literals
        number = Regex(r'\d+').set_parse_action(
            lambda s, loc, t: CSTNode("NUMBER", int(t[0]), [], self._span(s, loc))
        ).set_name("integer")
        boolean = (Keyword("true") | Keyword("false")).set_parse_action(
            lambda s, loc, t: CSTNode("BOOLEAN", t[0] == "true", [], self._span(s, loc))
        )
        string_literal = Regex(r'"(?:[^"\\\n]|\\.)*"').set_parse_action(self._make_string).set_name("string")

        # Primary expressions, then chained calls: f(a)(b)
        parenthesized = lparen + expression + rparen
        primary = number | boolean | string_literal | identifier | parenthesized
        call_args = Group(lparen + Opt(DelimitedList(expression)) + rparen)
        postfix = (primary + ZeroOrMore(call_args)).set_parse_action(self._make_calls)

        # Operators, highest precedence first
        infix_expression = infix_notation(postfix, [
            (one_of("! -"), 1, OpAssoc.RIGHT, self._make_unary),
            (one_of("* / %"), 2, OpAssoc.LEFT, self._make_binary),
            (one_of("+ -"), 2, OpAssoc.LEFT, self._make_binary),
            (one_of("<= >= < >"), 2, OpAssoc.LEFT, self._make_binary),
            (one_of("== !="), 2, OpAssoc.LEFT, self._make_binary),
            (Literal("&&"), 2, OpAssoc.LEFT, self._make_binary),
            (Literal("||"), 2, OpAssoc.LEFT, self._make_binary),
        ])

        # Blocks and statements
        block = (lbrace + Group(ZeroOrMore(statement)) + rbrace).set_parse_action(
            lambda s, loc, t: CSTNode("BLOCK", None, list(t[0]), self._span(s, loc))
        )

        # Anonymous functions: (x, y) -> expr  or  (x) -> { ... }
        lambda_expr = (param_list + arrow - (block | expression)).set_parse_action(
            lambda s, loc, t: CSTNode("LAMBDA", list(t[0]), [t[1]], self._span(s, loc))
        )

        expression <<= lambda_expr | infix_expression

        let_statement = (let_kw - name - Suppress("=") - expression - semicolon).set_parse_action(
            lambda s, loc, t: CSTNode("LET", t[0], [t[1]], self._span(s, loc))
        )
        return_statement = (return_kw - Opt(expression) - semicolon).set_parse_action(
            lambda s, loc, t: CSTNode("RETURN", None, list(t[1:]), self._span(s, loc))
        )
        if_statement <<= (
            if_kw - lparen - expression - rparen - block +
            Opt(else_kw + (if_statement | block))
        ).set_parse_action(
            lambda s, loc, t: CSTNode("IF", None, list(t), self._span(s, loc))
        )
        expression_statement = expression - semicolon

        statement <<= let_statement | return_statement | if_statement | block | expression_statement

        # Procedures and programs
        procedure = (name + param_list - block).set_parse_action(
            lambda s, loc, t: CSTNode(
                "PROCEDURE", {"name": t[0], "params": list(t[1])}, [t[2]], self._span(s, loc))
        )
        program = ZeroOrMore(procedure) + StringEnd()

        program.ignore(dbl_slash_comment)

        # Store grammar elements
        self.expression = expression
        self.statement = statement
        self.block = block
        self.procedure = procedure
        self.program = program

    # ------------------------------------------------------------------
    # Parse actions
    # ------------------------------------------------------------------

    def _make_calls(self, s: str, loc: int, tokens) -> CSTNode:
        """Fold chained argument lists into nested CALL nodes"""
        node = tokens[0]
        for args in tokens[1:]:
            node = CSTNode("CALL", None, [node] + list(args), node.span)
        return node

    def _make_binary(self, s: str, loc: int, tokens) -> CSTNode:
        """Fold a left-associative operator chain into BINARY nodes"""
        items = tokens[0]
        node = items[0]
        for i in range(1, len(items), 2):
            node = CSTNode("BINARY", items[i], [node, items[i + 1]], node.span)
        return node

    def _make_string(self, s: str, loc: int, tokens) -> CSTNode:
        """Decode a quoted literal; an unknown escape is a fatal parse error"""
        body = tokens[0][1:-1]
        decoded = []
        i = 0
        while i < len(body):
            char = body[i]
            if char == "\\":
                escaped = body[i + 1]
                if escaped not in STRING_ESCAPES:
                    raise ParseFatalException(s, loc + 1 + i, f"invalid escape sequence '\\{escaped}'")
                decoded.append(STRING_ESCAPES[escaped])
                i += 2
            else:
                decoded.append(char)
                i += 1
        return CSTNode("STRING", "".join(decoded), [], self._span(s, loc))

    def _make_unary(self, s: str, loc: int, tokens) -> CSTNode:
        items = tokens[0]
        node = items[-1]
        for op in reversed(items[:-1]):
            node = CSTNode("UNARY", op, [node], self._span(s, loc))
        return node

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def _parse(self, element: ParserElement, text: str, filename: str):
        """Run one grammar element over the whole text, reporting failures as LingerParseError"""
        self.filename = filename
        try:
            with recursion_limit(NESTING_RECURSION_LIMIT):
                return element.parse_string(text, parse_all=True)
        except ParseBaseException as e:
            span = SourceSpan(filename, e.lineno, e.column, e.line)
            raise LingerErrorHandler(text, filename).enhance_parse_exception(e, span) from e
        except RecursionError as e:
            raise LingerParseError(f"expression nested too deeply in {filename}") from e

    def parse_program(self, text: str, filename: str = "<input>") -> List[CSTNode]:
        """Parse a complete Linger program into its procedure CST nodes"""
        return list(self._parse(self.program, text, filename))

    def parse_expression(self, text: str, filename: str = "<input>") -> CSTNode:
        """Parse a single Linger expression"""
        return self._parse(self.expression, text, filename)[0]


class LingerParser:
    """Main Linger parser wrapping the grammar"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.grammar = LingerGrammar(debug)

    def parse_file(self, filepath: str) -> List[CSTNode]:
        """Parse a Linger source file"""
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                content = f.read()
        except UnicodeDecodeError as e:
            raise LingerParseError(f"Cannot decode file {filepath}: {e}")
        return self.grammar.parse_program(content, filepath)

    def parse_string(self, text: str, filename: str = "<input>") -> List[CSTNode]:
        """Parse Linger source code from string"""
        return self.grammar.parse_program(text, filename)

    def parse_expression(self, text: str, filename: str = "<input>") -> CSTNode:
        """Parse a single Linger expression"""
        return self.grammar.parse_expression(text, filename)


# Factory functions for creating parsers
def create_parser(debug: bool = False) -> LingerParser:
    """Create a Linger parser"""
    return LingerParser(debug=debug)


def create_debug_parser() -> LingerParser:
    """Create a Linger parser with debug enabled"""
    return LingerParser(debug=True)


# CST inspection helpers
def walk_cst(cst: CSTNode) -> Iterator[CSTNode]:
    """Yield every node of the tree, parents before children"""
    yield cst
    for child in cst.children:
        yield from walk_cst(child)


def find_nodes_by_type(cst: CSTNode, node_type: str) -> List[CSTNode]:
    return [node for node in walk_cst(cst) if node.type == node_type]


def pretty_print_cst(cst: CSTNode, indent: int = 0) -> str:
    """Indented one-node-per-line view of a CST, as shown by `linger --parse`"""
    label = cst.type if cst.value is None else f"{cst.type}({cst.value!r})"
    where = f"  @{cst.span.line}:{cst.span.column}" if cst.span else ""
    lines = ["  " * indent + label + where]
    lines.extend(pretty_print_cst(child, indent + 1) for child in cst.children)
    return "\n".join(lines) + ("\n" if indent == 0 else "")


def cst_to_dict(cst: CSTNode) -> Dict[str, Any]:
    """Plain nested dictionaries (spans without source text), e.g. for JSON dumps"""
    span = None
    if cst.span:
        span = {key: value for key, value in asdict(cst.span).items() if key != "text"}
    return {
        "type": cst.type,
        "value": cst.value,
        "span": span,
        "children": [cst_to_dict(child) for child in cst.children],
    }
