"""
Language module - turns script text into an AST.

Exports:
- Lexer, Token, TokenType: Tokenization
- Parser, parse_script: Parsing
- Script, NodeDefinition: Parse results (node types live in dialogscript.language.ast)
"""

from dialogscript.language.tokens import Token, TokenType
from dialogscript.language.lexer import Lexer
from dialogscript.language.ast import Script, NodeDefinition
from dialogscript.language.parser import Parser, parse_script

__all__ = [
    "Token",
    "TokenType",
    "Lexer",
    "Script",
    "NodeDefinition",
    "Parser",
    "parse_script",
]
