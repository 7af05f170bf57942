"""
SQL text helpers: identifier quoting and placeholder scanning.

Main entry points:
- `quote_identifier()` - Quote a table/column name
- `quote_column()` - Quote a plain or dotted (table.column) name per segment
- `render_term()` - Emit a projection/order/group term, raw if it is an expression
- `count_placeholders()` - Count parameter slots outside comments and literals
"""
import re
from dataclasses import dataclass
from enum import Enum, auto


class TokenType(Enum):
    """Token types identified during SQL scanning."""
    SQL_TEXT = auto()
    COMMENT = auto()
    STRING_LITERAL = auto()
    QUOTED_IDENTIFIER = auto()
    POSITIONAL_PH = auto()


@dataclass(slots=True)
class Token:
    """Token from SQL scanning."""
    type: TokenType
    text: str
    start: int
    end: int


_TOKENIZE = re.compile(r"""
    (?P<comment>--[^\n]*|/\*.*?(?:\*/|\Z))
    |(?P<string>'(?:[^']|'')*')
    |(?P<ident>"(?:[^"]|"")*"|`(?:[^`]|``)*`|\[[^\]]*\])
    |(?P<qmark>\?\d*)
""", re.VERBOSE | re.DOTALL)

_TOKEN_TYPES = {
    'comment': TokenType.COMMENT,
    'string': TokenType.STRING_LITERAL,
    'ident': TokenType.QUOTED_IDENTIFIER,
    'qmark': TokenType.POSITIONAL_PH,
}


def tokenize_sql(sql: str) -> list[Token]:
    """Split SQL into literals, quoted identifiers, placeholders and text.

    Parameters
        sql: SQL query string

    Returns
        List of tokens preserving all SQL text
    """
    tokens = []
    last_end = 0

    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()

        if start > last_end:
            tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:start], last_end, start))

        ttype = _TOKEN_TYPES[match.lastgroup]
        tokens.append(Token(ttype, match.group(0), start, end))
        last_end = end

    if last_end < len(sql):
        tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:], last_end, len(sql)))

    return tokens


def count_placeholders(sql: str) -> int:
    """Number of parameter slots the engine allocates for `sql`.

    A bare `?` takes the slot after the highest one used so far and `?NNN`
    takes slot NNN, so the count is the highest slot index. Markers inside
    comments, literals or quoted identifiers are ignored.
    """
    highest = 0
    for token in tokenize_sql(sql):
        if token.type != TokenType.POSITIONAL_PH:
            continue
        index = int(token.text[1:]) if len(token.text) > 1 else highest + 1
        highest = max(highest, index)
    return highest


def quote_identifier(identifier: str) -> str:
    """Safely quote a database identifier.

    Embedded double quotes are doubled, so the result is always a single
    identifier token.
    """
    return '"' + identifier.replace('"', '""') + '"'


def quote_column(name: str) -> str:
    """Quote a plain or dotted identifier one segment at a time.

    A `*` segment (as in `users.*`) is left bare.
    """
    return '.'.join(seg if seg == '*' else quote_identifier(seg)
                    for seg in name.split('.'))


def is_expression(token: str) -> bool:
    """Tokens with a space or parenthesis are raw SQL expressions."""
    return ' ' in token or '(' in token


def render_term(token: str) -> str:
    """Emit a projection, group-by, order-by or having term.
    """
    if token == '*' or is_expression(token):
        return token
    return quote_column(token)
