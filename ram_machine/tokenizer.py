"""
Tokenizer for RAM assembly source.

Splits each source line into a flat token stream for the assembler:

    loop: start:  ADD  *3   ; add the value pointed to by r3
    ^^^^  ^^^^^^  ^^^  ^^   ^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^  + NEWLINE
    LABEL LABEL   MNEM  |   COMMENT
                        MARKER('*') OPERAND('3')

Rules, left to right:
  - ';' starts a comment that runs to end of line; nothing after it is tokenized
  - whitespace separates words
  - '=' or '*' at the start of a word is a standalone MARKER token
  - a word ending in ':' is a LABEL (colon stripped)
  - the first non-label word is the MNEMONIC, every later word an OPERAND
  - every line ends with a NEWLINE token

Tokenizing is purely per line; no state carries over between lines.
"""

from __future__ import annotations
import enum
from dataclasses import dataclass
from typing import List

__all__ = ['TokenType', 'Token', 'tokenize_line', 'tokenize']


class TokenType(enum.Enum):
    LABEL = "LABEL"
    MNEMONIC = "MNEMONIC"
    MARKER = "MARKER"
    OPERAND = "OPERAND"
    COMMENT = "COMMENT"
    NEWLINE = "NEWLINE"


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str
    line: int
    col: int

    def __repr__(self):
        return f"Token({self.type.name}, {self.value!r}, L{self.line}:{self.col})"


def tokenize_line(line: str, line_num: int = 1) -> List[Token]:
    """Tokenize a single line of source. Always ends with a NEWLINE token."""
    tokens: List[Token] = []
    found_mnemonic = False
    word = ""
    word_col = 0

    def flush():
        nonlocal found_mnemonic
        if not word:
            return
        if word.endswith(':'):
            tokens.append(Token(TokenType.LABEL, word[:-1], line_num, word_col))
        elif not found_mnemonic:
            found_mnemonic = True
            tokens.append(Token(TokenType.MNEMONIC, word, line_num, word_col))
        else:
            tokens.append(Token(TokenType.OPERAND, word, line_num, word_col))

    for col, ch in enumerate(line, 1):
        if ch == ';':
            flush()
            word = ""
            tokens.append(Token(TokenType.COMMENT, line[col:], line_num, col))
            break
        if ch in '=*' and not word:
            tokens.append(Token(TokenType.MARKER, ch, line_num, col))
        elif ch.isspace():
            flush()
            word = ""
        else:
            if not word:
                word_col = col
            word += ch
    else:
        flush()

    tokens.append(Token(TokenType.NEWLINE, "", line_num, len(line) + 1))
    return tokens


def tokenize(source: str) -> List[Token]:
    """Tokenize a whole source text, one NEWLINE-terminated group per line."""
    tokens: List[Token] = []
    for line_num, line in enumerate(source.splitlines(), 1):
        tokens.extend(tokenize_line(line, line_num))
    return tokens
