"""SQL DDL import — ``CREATE TABLE`` text → Table fragments.

Supported subset (keywords case-insensitive)::

    statement  := CREATE TABLE [IF NOT EXISTS] qname '(' element {',' element} ')' [';']
    qname      := ident ['.' ident]
    element    := table_constraint | column_def
    column_def := ident type_name {modifier}
    type_name  := ident ['(' number {',' number} ')'] ['[' ']']
    modifier   := PRIMARY KEY | NOT NULL | NULL | UNIQUE | DEFAULT expr
                | REFERENCES qname ['(' ident ')'] | CHECK '(' ... ')' | other token

Table-level constraints (CONSTRAINT, PRIMARY, FOREIGN, UNIQUE, INDEX,
CHECK) are recognized and skipped; multi-column keys are not
reconstructed. ``CREATE [UNIQUE] INDEX name ON table (cols)`` statements
following a table are attached to that table's ``indexes``.

Parsing never raises: an unrecognized statement or a malformed column
fragment is dropped and reported in ``ParseResult`` so callers can show
a count.

Reference: DESIGN.md — DDL Parser.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from vibedb.constants import (
    DEFAULT_LINKED_COLUMN,
    GRID_COLUMNS,
    GRID_MARGIN,
    GRID_SPACING,
)
from vibedb.core.relationship_resolver import resolve_foreign_keys
from vibedb.core.serializers import clone_schema
from vibedb.models.schema import (
    Column,
    ColumnType,
    Constraint,
    ConstraintType,
    FkStatus,
    Index,
    Schema,
    Table,
)

logger = logging.getLogger(__name__)

_STATEMENT_SPLIT = re.compile(r"(?=CREATE\s+TABLE)", re.IGNORECASE)
_CREATE_TABLE_HEAD = re.compile(r"^\s*CREATE\s+TABLE\b", re.IGNORECASE)

_TABLE_CONSTRAINT_KEYWORDS = (
    "CONSTRAINT", "PRIMARY", "FOREIGN", "UNIQUE", "INDEX", "CHECK",
)

# Ordered substring → type. The first entry that matches wins, so e.g.
# "point" and "interval" normalize to int, "datetime" to timestamp.
_TYPE_PRIORITY: tuple[tuple[tuple[str, ...], ColumnType], ...] = (
    (("int", "serial"), ColumnType.INT),
    (("uuid",), ColumnType.UUID),
    (("time", "date"), ColumnType.TIMESTAMP),
    (("bool",), ColumnType.BOOLEAN),
    (("decimal", "numeric"), ColumnType.NUMERIC),
    (("float", "real", "double"), ColumnType.FLOAT),
    (("json",), ColumnType.JSONB),
    (("text",), ColumnType.TEXT),
)


def normalize_type(raw_type: str) -> ColumnType:
    """Map a raw SQL type onto the column vocabulary (default varchar)."""
    raw = raw_type.lower()
    for needles, ctype in _TYPE_PRIORITY:
        if any(n in raw for n in needles):
            return ctype
    return ColumnType.VARCHAR


# =====================================================================
# Tokenizer
# =====================================================================


class TokenKind(Enum):
    WORD = "word"
    QUOTED = "quoted"
    STRING = "string"
    NUMBER = "number"
    PUNCT = "punct"
    OTHER = "other"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    start: int
    end: int

    def is_keyword(self, *words: str) -> bool:
        return self.kind == TokenKind.WORD and self.text.upper() in words

    def is_punct(self, char: str) -> bool:
        return self.kind == TokenKind.PUNCT and self.text == char


_TOKEN_RE = re.compile(
    r"""
      (?P<skip>\s+|--[^\n]*|/\*.*?\*/)
    | (?P<quoted>"(?:[^"]|"")*"|`[^`]*`)
    | (?P<string>'(?:[^']|'')*')
    | (?P<number>\d+(?:\.\d+)?)
    | (?P<word>[A-Za-z_][A-Za-z0-9_$]*)
    | (?P<punct>::|[(),.;\[\]])
    | (?P<other>.)
    """,
    re.VERBOSE | re.DOTALL,
)


def tokenize(text: str) -> list[Token]:
    """Split SQL text into tokens (whitespace and comments dropped)."""
    tokens = []
    for m in _TOKEN_RE.finditer(text):
        kind = m.lastgroup
        if kind == "skip":
            continue
        tokens.append(Token(TokenKind(kind), m.group(), m.start(), m.end()))
    return tokens


class DDLSyntaxError(ValueError):
    """Raised internally for an unparseable statement or fragment."""


# =====================================================================
# Recursive-descent parser
# =====================================================================


class _TokenStream:
    """Cursor over a token list with the usual accept/expect helpers."""

    def __init__(self, tokens: list[Token], source: str) -> None:
        self._tokens = tokens
        self._source = source
        self.pos = 0

    @property
    def at_end(self) -> bool:
        return self.pos >= len(self._tokens)

    def peek(self, offset: int = 0) -> Token | None:
        i = self.pos + offset
        return self._tokens[i] if i < len(self._tokens) else None

    def advance(self) -> Token:
        tok = self.peek()
        if tok is None:
            raise DDLSyntaxError("unexpected end of input")
        self.pos += 1
        return tok

    def accept_keyword(self, *words: str) -> bool:
        """Consume the keyword sequence if it comes next."""
        for offset, word in enumerate(words):
            tok = self.peek(offset)
            if tok is None or not tok.is_keyword(word):
                return False
        self.pos += len(words)
        return True

    def expect_keyword(self, *words: str) -> None:
        if not self.accept_keyword(*words):
            raise DDLSyntaxError(f"expected {' '.join(words)}")

    def accept_punct(self, char: str) -> bool:
        tok = self.peek()
        if tok is not None and tok.is_punct(char):
            self.pos += 1
            return True
        return False

    def identifier(self) -> str:
        tok = self.advance()
        if tok.kind == TokenKind.WORD:
            return tok.text
        if tok.kind in (TokenKind.QUOTED, TokenKind.STRING):
            return tok.text[1:-1]
        raise DDLSyntaxError(f"expected identifier, got {tok.text!r}")

    def qualified_name(self) -> str:
        """``ident ['.' ident]`` → the unqualified (last) part."""
        name = self.identifier()
        if self.accept_punct("."):
            name = self.identifier()
        return name

    def skip_parenthesized(self) -> None:
        """Consume a balanced ``( ... )`` group starting at the cursor."""
        if not self.accept_punct("("):
            return
        depth = 1
        while depth and not self.at_end:
            tok = self.advance()
            if tok.is_punct("("):
                depth += 1
            elif tok.is_punct(")"):
                depth -= 1
        if depth:
            raise DDLSyntaxError("unbalanced parentheses")

    def text_between(self, start: int, end: int) -> str:
        """Source text from token index start up to (excluding) end."""
        return self._source[self._tokens[start].start:self._tokens[end - 1].end]


def _split_elements(tokens: list[Token]) -> list[list[Token]]:
    """Split the column body on top-level commas only."""
    elements: list[list[Token]] = [[]]
    depth = 0
    for tok in tokens:
        if tok.is_punct("("):
            depth += 1
        elif tok.is_punct(")"):
            depth -= 1
        elif tok.is_punct(",") and depth == 0:
            elements.append([])
            continue
        elements[-1].append(tok)
    return [e for e in elements if e]


def _parse_default(stream: _TokenStream) -> str | None:
    """Raw text of a DEFAULT expression: literal, call, or cast chain.

    Returns None when DEFAULT is followed by a separator or nothing.
    """
    start = stream.pos
    tok = stream.peek()
    if tok is None or (tok.kind == TokenKind.PUNCT and not tok.is_punct("(")):
        return None
    stream.advance()
    if tok.kind == TokenKind.OTHER and tok.text in "+-":
        nxt = stream.peek()
        if nxt is not None and nxt.kind == TokenKind.NUMBER:
            stream.advance()
    elif tok.is_punct("("):
        stream.pos -= 1
        stream.skip_parenthesized()
    elif tok.kind == TokenKind.WORD:
        nxt = stream.peek()
        if nxt is not None and nxt.is_punct("("):
            stream.skip_parenthesized()
    while stream.accept_punct("::"):
        stream.identifier()
        nxt = stream.peek()
        if nxt is not None and nxt.is_punct("("):
            stream.skip_parenthesized()
    return stream.text_between(start, stream.pos)


def _parse_type(stream: _TokenStream) -> str:
    tok = stream.advance()
    if tok.kind == TokenKind.WORD:
        raw_type = tok.text
    elif tok.kind == TokenKind.QUOTED:
        raw_type = tok.text[1:-1]
    else:
        raise DDLSyntaxError(f"expected type, got {tok.text!r}")

    # Optional (size) / (precision, scale): numbers only
    if stream.peek() is not None and stream.peek().is_punct("("):
        i = 1
        ok = False
        while True:
            tok = stream.peek(i)
            if tok is None:
                break
            if tok.is_punct(")"):
                ok = i > 1
                break
            if tok.kind != TokenKind.NUMBER and not tok.is_punct(","):
                break
            i += 1
        if ok:
            stream.pos += i + 1
    # Array suffix
    if stream.peek() is not None and stream.peek().is_punct("["):
        nxt = stream.peek(1)
        if nxt is not None and nxt.is_punct("]"):
            stream.pos += 2
    return raw_type


def parse_column(tokens: list[Token], source: str) -> Column:
    """Parse one column-definition fragment.

    Raises:
        DDLSyntaxError: If the fragment has no name/type pair.
    """
    stream = _TokenStream(tokens, source)
    name = stream.identifier()
    raw_type = _parse_type(stream)

    is_pk = is_not_null = is_unique = False
    default_value: str | None = None
    linked_table: str | None = None
    linked_column = DEFAULT_LINKED_COLUMN

    while not stream.at_end:
        if stream.accept_keyword("PRIMARY", "KEY"):
            is_pk = True
        elif stream.accept_keyword("NOT", "NULL"):
            is_not_null = True
        elif stream.accept_keyword("UNIQUE"):
            is_unique = True
        elif stream.accept_keyword("DEFAULT"):
            if default_value is None:
                default_value = _parse_default(stream)
            else:
                _parse_default(stream)
        elif stream.accept_keyword("REFERENCES"):
            linked_table = stream.qualified_name()
            if stream.accept_punct("("):
                linked_column = stream.identifier()
                if not stream.accept_punct(")"):
                    raise DDLSyntaxError("unterminated REFERENCES column list")
        elif stream.accept_keyword("CHECK"):
            stream.skip_parenthesized()
        elif stream.peek().is_punct("("):
            stream.skip_parenthesized()
        else:
            stream.advance()

    constraints: list[Constraint] = []
    if is_pk:
        constraints.append(Constraint(ConstraintType.PRIMARY))
    if is_not_null and not is_pk:
        constraints.append(Constraint(ConstraintType.NOT_NULL))
    if is_unique and not is_pk:
        constraints.append(Constraint(ConstraintType.UNIQUE))
    if default_value is not None:
        constraints.append(Constraint(ConstraintType.DEFAULT, default_value))

    is_fk = linked_table is not None
    return Column(
        name=name,
        type=normalize_type(raw_type),
        is_foreign_key=is_fk,
        linked_table=linked_table,
        linked_column=linked_column if is_fk else DEFAULT_LINKED_COLUMN,
        fk_status=FkStatus.UNRESOLVED if is_fk else FkStatus.RESOLVED,
        constraints=constraints,
    )


@dataclass
class _PendingIndex:
    table_name: str
    index: Index


def _parse_trailing_indexes(stream: _TokenStream) -> list[_PendingIndex]:
    """Scan the rest of a chunk for ``CREATE [UNIQUE] INDEX`` statements."""
    found: list[_PendingIndex] = []
    while not stream.at_end:
        if not stream.accept_keyword("CREATE"):
            stream.advance()
            continue
        unique = stream.accept_keyword("UNIQUE")
        if not stream.accept_keyword("INDEX"):
            continue
        try:
            stream.accept_keyword("CONCURRENTLY")
            stream.accept_keyword("IF", "NOT", "EXISTS")
            index_name = stream.identifier()
            stream.expect_keyword("ON")
            table_name = stream.qualified_name()
            method = "btree"
            if stream.accept_keyword("USING"):
                method = stream.identifier().lower()
            if not stream.accept_punct("("):
                raise DDLSyntaxError("expected index column list")
            columns = [stream.identifier()]
            while stream.accept_punct(","):
                columns.append(stream.identifier())
            if not stream.accept_punct(")"):
                raise DDLSyntaxError("unterminated index column list")
        except DDLSyntaxError as exc:
            logger.debug("Skipping index statement: %s", exc)
            continue
        found.append(_PendingIndex(
            table_name,
            Index(name=index_name, columns=columns, type=method, unique=unique),
        ))
    return found


# =====================================================================
# Public API
# =====================================================================


@dataclass
class ParseResult:
    """Outcome of a DDL import.

    Attributes:
        tables: Parsed tables (no positions assigned).
        skipped_statements: ``CREATE TABLE`` chunks that yielded nothing.
        skipped_fragments: Column fragments that could not be parsed.
    """
    tables: list[Table] = field(default_factory=list)
    skipped_statements: list[str] = field(default_factory=list)
    skipped_fragments: list[str] = field(default_factory=list)

    @property
    def table_count(self) -> int:
        return len(self.tables)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped_statements) + len(self.skipped_fragments)


def split_statements(sql: str) -> list[str]:
    """Split text before each ``CREATE TABLE``; empty chunks dropped."""
    return [s for s in _STATEMENT_SPLIT.split(sql) if s.strip()]


def _parse_statement(
    chunk: str, result: ParseResult,
) -> tuple[Table | None, list[_PendingIndex]]:
    tokens = tokenize(chunk)
    stream = _TokenStream(tokens, chunk)
    stream.expect_keyword("CREATE", "TABLE")
    stream.accept_keyword("IF", "NOT", "EXISTS")
    table_name = stream.qualified_name()

    # Column body: first "(" to its matching ")"
    while not stream.at_end and not stream.peek().is_punct("("):
        stream.advance()
    if stream.at_end:
        raise DDLSyntaxError("missing column list")
    body_start = stream.pos + 1
    stream.skip_parenthesized()
    body = tokens[body_start:stream.pos - 1]

    columns: list[Column] = []
    for element in _split_elements(body):
        if element[0].is_keyword(*_TABLE_CONSTRAINT_KEYWORDS):
            continue
        try:
            columns.append(parse_column(element, chunk))
        except DDLSyntaxError as exc:
            fragment = chunk[element[0].start:element[-1].end]
            logger.debug("Skipping column fragment %r: %s", fragment, exc)
            result.skipped_fragments.append(fragment)

    indexes = _parse_trailing_indexes(stream)
    if not columns:
        return None, indexes
    return Table(name=table_name, columns=columns), indexes


def parse_ddl(sql: str) -> ParseResult:
    """Parse ``CREATE TABLE`` statements into Table fragments.

    Args:
        sql: Free-form SQL text.

    Returns:
        ParseResult with tables in statement order. Foreign keys are left
        ``unresolved``; resolution happens after the whole batch.
    """
    result = ParseResult()
    pending: list[_PendingIndex] = []
    for chunk in split_statements(sql):
        if not _CREATE_TABLE_HEAD.match(chunk):
            logger.debug("Ignoring non-table text before first CREATE TABLE")
            continue
        try:
            table, indexes = _parse_statement(chunk, result)
        except DDLSyntaxError as exc:
            logger.debug("Skipping statement: %s", exc)
            result.skipped_statements.append(chunk.strip())
            continue
        pending.extend(indexes)
        if table is None:
            result.skipped_statements.append(chunk.strip())
            continue
        result.tables.append(table)

    parsed = Schema(result.tables)
    for p in pending:
        target = parsed.find_table_by_name(p.table_name)
        if target is not None:
            target.indexes.append(p.index)

    if result.skipped_count:
        logger.info(
            "DDL import: %d table(s), %d statement(s) and %d fragment(s) skipped",
            result.table_count,
            len(result.skipped_statements),
            len(result.skipped_fragments),
        )
    return result


def place_in_grid(
    tables: list[Table], origin: tuple[float, float] = (0.0, 0.0),
) -> None:
    """Assign import positions on a 3-column grid, in list order."""
    ox, oy = origin
    for i, table in enumerate(tables):
        table.x = ox + GRID_MARGIN + (i % GRID_COLUMNS) * GRID_SPACING
        table.y = oy + GRID_MARGIN + (i // GRID_COLUMNS) * GRID_SPACING


def import_ddl(
    schema: Schema,
    sql: str,
    origin: tuple[float, float] = (0.0, 0.0),
) -> tuple[Schema, ParseResult]:
    """Parse SQL and append the tables to a copy of ``schema``.

    Imported tables are placed on the grid at ``origin`` and their foreign
    keys resolved against existing and imported tables together.

    Returns:
        (new schema, parse result).
    """
    result = parse_ddl(sql)
    place_in_grid(result.tables, origin)
    merged = clone_schema(schema)
    merged.tables.extend(clone_schema(Schema(result.tables)).tables)
    return resolve_foreign_keys(merged), result
