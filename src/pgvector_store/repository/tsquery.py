"""Lexical query preparation for PostgreSQL full-text search."""

import re
from dataclasses import dataclass

TSQUERY_OPERATOR_PATTERN = re.compile(r"[&|!]|<->|<\d+>|:\*")
BOOLEAN_WORD_PATTERN = re.compile(r"\b(AND|OR|NOT)\b")

# Operators, parentheses, then anything else up to the next separator
TOKEN_PATTERN = re.compile(r"<->|<\d+>|[&|!()]|[^\s&|!()<>]+")
WORD_PATTERN = re.compile(r"\w+")

BOOLEAN_WORDS = {"AND": "&", "OR": "|", "NOT": "!"}
PUNCTUATION = {"&", "|", "!", "(", ")"}
BINARY_OPERATORS = {"&", "|", "<->"}

LUCENE_SYNTAX_NOTES = """\
Lexical queries use PostgreSQL full-text search with the 'english' configuration.
Plain text is stemmed, stop words are dropped and all remaining terms must match:
  machine learning        -> both terms
Operators are understood:
  kubernetes & docker     -> both terms
  kubernetes | docker     -> either term
  kubernetes & !docker    -> first term without the second
  machine <-> learning    -> adjacent terms, in order
  kube:*                  -> prefix match
The words AND, OR and NOT (upper case) are accepted in place of &, | and !.
Terms with no operator between them must all match, so
  machine learning OR deep learning
means (machine & learning) | (deep & learning). Punctuation inside terms is
ignored and dangling operators or unbalanced parentheses are dropped.
"""


@dataclass(frozen=True)
class PreparedQuery:
    """Query text plus the tsquery function that parses it."""

    function: str
    text: str

    def sql(self, param: str = "query") -> str:
        return f"{self.function}('english', :{param})"


def uses_operator_syntax(query: str) -> bool:
    return bool(TSQUERY_OPERATOR_PATTERN.search(query) or BOOLEAN_WORD_PATTERN.search(query))


def _is_binary(token: str) -> bool:
    return token in BINARY_OPERATORS or bool(re.fullmatch(r"<\d+>", token))


def _operands(term: str) -> list[str]:
    """Split a raw term into tsquery-safe words, keeping a trailing prefix marker."""
    prefix = term.endswith(":*")
    words = WORD_PATTERN.findall(term[:-2] if prefix else term)
    if prefix and words:
        words[-1] = f"{words[-1]}:*"
    return words


def _tokens(query: str) -> list[str]:
    tokens: list[str] = []
    for raw in TOKEN_PATTERN.findall(query):
        if raw in BOOLEAN_WORDS:
            tokens.append(BOOLEAN_WORDS[raw])
        elif raw in PUNCTUATION or _is_binary(raw):
            tokens.append(raw)
        else:
            tokens.extend(_operands(raw))
    return tokens


class _TsQueryWriter:
    """Emits a well-formed tsquery from a loose token stream.

    Adjacent operands are joined with ``&``. Binary operators with a missing
    operand, empty or unmatched parentheses and trailing negations are dropped.
    """

    def __init__(self):
        self.parts: list[str] = []
        self.depth = 0

    @staticmethod
    def _is_operator(part: str) -> bool:
        return part in {"!", "("} or _is_binary(part)

    def _after_operand(self) -> bool:
        return bool(self.parts) and not self._is_operator(self.parts[-1])

    def _trim_dangling(self) -> None:
        while self.parts and self._is_operator(self.parts[-1]):
            if self.parts.pop() == "(":
                self.depth -= 1

    def add(self, token: str) -> None:
        if _is_binary(token):
            if self._after_operand():
                self.parts.append(token)
        elif token == ")":
            if self.depth == 0:
                return
            open_groups = self.depth
            self._trim_dangling()
            # An empty group was dropped along with its "("
            if self.depth == open_groups:
                self.parts.append(")")
                self.depth -= 1
        else:
            if self._after_operand():
                self.parts.append("&")
            if token == "(":
                self.depth += 1
            self.parts.append(token)

    def finish(self) -> str:
        self._trim_dangling()
        self.parts.extend(")" * self.depth)
        self.depth = 0

        text = ""
        for part in self.parts:
            if text and not text.endswith(("!", "(")) and part != ")":
                text += " "
            text += part
        return text


def normalize_tsquery(query: str) -> str:
    """Rewrite loose operator syntax into text ``to_tsquery`` always accepts.

    "rock & roll music" -> "rock & roll & music"
    "coffee AND NOT decaf" -> "coffee & !decaf"
    "great tool!" -> "great & tool"
    """
    writer = _TsQueryWriter()
    for token in _tokens(query):
        writer.add(token)
    return writer.finish()


def prepare_query(query: str) -> PreparedQuery:
    """Choose plainto_tsquery for plain text and to_tsquery for operator syntax.

    Operator queries that normalize to nothing fall back to plainto_tsquery,
    which matches nothing rather than failing.
    """
    stripped = query.strip()
    if uses_operator_syntax(stripped):
        normalized = normalize_tsquery(stripped)
        if normalized:
            return PreparedQuery("to_tsquery", normalized)
    return PreparedQuery("plainto_tsquery", stripped)
