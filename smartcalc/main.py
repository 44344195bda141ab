# Interactive integer calculator: normalizer, shunting-yard converter, postfix evaluator,
# variable environment and the REPL shell that drives them.
#
# Expressions use integers, alphabetic variables, parentheses and the operators + - * / ^.
# Arithmetic is exact (Python int), '/' truncates toward zero and '^' is exact integer power.
# Failures inside the pipeline are raised as CalculatorError subclasses; the Calculator surface
# turns them into a Result carrying exactly one ErrorKind, so callers never see an exception.

from __future__ import annotations

import argparse
import logging
import os
import re
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union

from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory, History, InMemoryHistory

from smartcalc.config import CalculatorSettings, ConfigError, configure_logging, load_settings

logger = logging.getLogger(__name__)

# --------------------------
# Errors
# --------------------------

class ErrorKind(Enum):
    """Closed set of errors reported to the user, valued by their message."""
    UNKNOWN_COMMAND = "Unknown command"
    INVALID_EXPRESSION = "Invalid expression"
    INVALID_IDENTIFIER = "Invalid identifier"
    INVALID_ASSIGNMENT = "Invalid assignment"
    UNKNOWN_VARIABLE = "Unknown variable"

    @property
    def message(self) -> str:
        return self.value


class CalculatorError(Exception):
    """Base class for pipeline failures. Each subclass maps to one ErrorKind."""
    kind = ErrorKind.INVALID_EXPRESSION


class NormalizationError(CalculatorError):
    """Raised when a line contains characters outside the expression alphabet."""
    pass


class ConversionError(CalculatorError):
    """Raised for unbalanced parentheses or tokens the converter cannot place."""
    pass


class EvaluationError(CalculatorError):
    """Raised for stack underflow, leftover operands, division by zero, negative exponents."""
    pass


class UnknownVariableError(CalculatorError):
    kind = ErrorKind.UNKNOWN_VARIABLE


class IdentifierError(CalculatorError):
    kind = ErrorKind.INVALID_IDENTIFIER


class AssignmentError(CalculatorError):
    kind = ErrorKind.INVALID_ASSIGNMENT


@dataclass(frozen=True)
class Result:
    """Outcome of processing one line: a value, an error, or neither (blank line)."""
    value: Optional[int] = None
    error: Optional[ErrorKind] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[int]) -> "Result":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind) -> "Result":
        return cls(error=kind)

# --------------------------
# Tokens / Normalizer
# --------------------------

class TokenType(Enum):
    """Token tags."""
    NUMBER = 'NUMBER'
    IDENT = 'IDENT'
    OP = 'OP'
    LPAREN = 'LPAREN'
    RPAREN = 'RPAREN'
    ASSIGN = 'ASSIGN'


@dataclass(frozen=True)
class Token:
    """A classified lexical unit. value is an int for NUMBER, the text otherwise."""
    type: TokenType
    value: Union[int, str]

    @property
    def is_operand(self) -> bool:
        return self.type in (TokenType.NUMBER, TokenType.IDENT)

    @property
    def rank(self) -> int:
        """Precedence rank of an operator or parenthesis token."""
        if self.is_operand or self.type == TokenType.ASSIGN:
            raise ConversionError(f"{self!r} has no precedence")
        return PRECEDENCES[self.value]

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r})"


_ALLOWED_RE = re.compile(r"[A-Za-z0-9+\-*/^()= \t]*")
_TOKEN_RE = re.compile(r"\(|\)|\^|/|\*|=|[+-](?:[ \t]*[+-])*|[A-Za-z]+|[0-9]+")
IDENTIFIER_RE = re.compile(r"[A-Za-z]+")

_SINGLE_CHAR_TOKENS: Dict[str, TokenType] = {
    '(': TokenType.LPAREN,
    ')': TokenType.RPAREN,
    '=': TokenType.ASSIGN,
    '*': TokenType.OP,
    '/': TokenType.OP,
    '^': TokenType.OP,
}


def _fold_signs(run: str) -> str:
    """Collapse a run of '+'/'-' into one sign: an even number of '-' cancels out."""
    return '-' if run.count('-') % 2 else '+'


def normalize(line: str) -> List[Token]:
    """Turn a raw input line into canonical infix tokens.

    Sign runs are folded ('1 - - 2' -> '1 + 2') and a sign that opens the expression,
    follows '(' or follows '=' gets a synthetic 0 operand so it becomes a binary operator.
    """
    if not _ALLOWED_RE.fullmatch(line):
        raise NormalizationError(f"Unexpected character in {line!r}")
    tokens: List[Token] = []
    for match in _TOKEN_RE.finditer(line):
        raw = match.group()
        if raw[0] in '+-':
            if not tokens or tokens[-1].type in (TokenType.LPAREN, TokenType.ASSIGN):
                tokens.append(Token(TokenType.NUMBER, 0))
            tokens.append(Token(TokenType.OP, _fold_signs(raw)))
        elif raw.isdigit():
            try:
                number = int(raw)
            except ValueError as e:
                # interpreter limit on decimal digits in int conversion
                raise NormalizationError(str(e)) from None
            tokens.append(Token(TokenType.NUMBER, number))
        elif raw.isalpha():
            tokens.append(Token(TokenType.IDENT, raw))
        else:
            tokens.append(Token(_SINGLE_CHAR_TOKENS[raw], raw))
    logger.debug("Normalized %r -> %s", line, tokens)
    return tokens

# --------------------------
# Shunting-yard converter
# --------------------------

# Rank per symbol; higher binds tighter. '(' sits below everything so only ')' removes it.
PRECEDENCES: Dict[str, int] = {
    '(': -2,
    ')': -1,
    '+': 0,
    '-': 0,
    '*': 1,
    '/': 1,
    '^': 2,
}


def _check_balance(tokens: List[Token]) -> None:
    depth = 0
    for tok in tokens:
        if tok.type == TokenType.LPAREN:
            depth += 1
        elif tok.type == TokenType.RPAREN:
            depth -= 1
            if depth < 0:
                raise ConversionError("Unmatched ')'")
    if depth:
        raise ConversionError("Unclosed '('")


def to_postfix(tokens: List[Token]) -> List[Token]:
    """Reorder infix tokens into postfix order. Equal ranks pop first, so they run left to right."""
    _check_balance(tokens)
    stack: List[Token] = []
    output: List[Token] = []
    for tok in tokens:
        if tok.is_operand:
            output.append(tok)
            continue
        if tok.type == TokenType.ASSIGN:
            raise ConversionError("'=' is only allowed once, after the assigned name")
        rank = tok.rank
        if tok.type == TokenType.RPAREN:
            while stack[-1].rank >= rank:
                output.append(stack.pop())
            # the balance check guarantees the matching '(' is now on top
            stack.pop()
        elif not stack or stack[-1].type == TokenType.LPAREN or tok.type == TokenType.LPAREN:
            stack.append(tok)
        elif stack[-1].rank < rank:
            stack.append(tok)
        else:
            while stack and stack[-1].rank >= rank:
                output.append(stack.pop())
            stack.append(tok)
    while stack:
        output.append(stack.pop())
    logger.debug("Postfix: %s", output)
    return output

# --------------------------
# Variable environment
# --------------------------

class VariableEnvironment:
    """Case-sensitive name -> int mapping. Entries are only ever created or overwritten."""

    def __init__(self):
        self._values: Dict[str, int] = {}

    def lookup(self, name: str) -> int:
        try:
            return self._values[name]
        except KeyError:
            raise UnknownVariableError(f"Unknown variable: {name}") from None

    def set(self, name: str, value: int) -> None:
        self._values[name] = value

    def items(self) -> List[Tuple[str, int]]:
        return sorted(self._values.items())

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

# --------------------------
# Postfix evaluator
# --------------------------

def _truncating_div(a: int, b: int) -> int:
    """Integer division rounding toward zero: 7 / 2 == 3 and -7 / 2 == -3."""
    if b == 0:
        raise EvaluationError("Division by zero")
    quotient = abs(a) // abs(b)
    return -quotient if (a < 0) != (b < 0) else quotient


# Largest power result, in bits, computed before giving up (about 300k decimal digits).
MAX_POWER_BITS = 1_000_000


def _int_pow(a: int, b: int) -> int:
    if b < 0:
        raise EvaluationError("Negative exponent")
    if abs(a) > 1 and (abs(a).bit_length() - 1) * b > MAX_POWER_BITS:
        raise EvaluationError(f"Power of a {abs(a).bit_length()}-bit base to exponent {b} is too large")
    # int ** int is exact (repeated squaring), no float rounding
    return a ** b


_OPERATORS: Dict[str, Callable[[int, int], int]] = {
    '+': lambda a, b: a + b,
    '-': lambda a, b: a - b,
    '*': lambda a, b: a * b,
    '/': _truncating_div,
    '^': _int_pow,
}


def evaluate_postfix(postfix: List[Token], env: VariableEnvironment) -> int:
    """Evaluate a postfix sequence with an operand stack.

    For an operator the value popped first is the right operand and the value popped
    second is the left one. Exactly one value must remain at the end.
    """
    stack: List[int] = []
    for tok in postfix:
        if tok.type == TokenType.NUMBER:
            stack.append(tok.value)
        elif tok.type == TokenType.IDENT:
            stack.append(env.lookup(tok.value))
        elif tok.type == TokenType.OP:
            if len(stack) < 2:
                raise EvaluationError(f"Missing operand for {tok.value!r}")
            b = stack.pop()
            a = stack.pop()
            stack.append(_OPERATORS[tok.value](a, b))
        else:
            raise EvaluationError(f"Unexpected token in postfix sequence: {tok!r}")
    if len(stack) != 1:
        raise EvaluationError(f"Expression left {len(stack)} values on the stack")
    return stack[0]

# --------------------------
# Calculator session
# --------------------------

class Calculator:
    """Owns one variable environment and exposes evaluate/assign returning a Result."""

    def __init__(self, env: Optional[VariableEnvironment] = None):
        self.env = env if env is not None else VariableEnvironment()

    def _run(self, tokens: List[Token]) -> int:
        return evaluate_postfix(to_postfix(tokens), self.env)

    def evaluate(self, line: str) -> Result:
        """Evaluate a bare expression."""
        try:
            value = self._run(normalize(line))
        except CalculatorError as e:
            logger.info("Evaluation of %r failed: %s", line, e)
            return Result.failure(e.kind)
        return Result.success(value)

    def assign(self, line: str) -> Result:
        """Handle 'name = expression'. The environment is untouched unless the right side evaluates."""
        try:
            name, value = self._assign(line)
        except CalculatorError as e:
            logger.info("Assignment %r failed: %s", line, e)
            return Result.failure(e.kind)
        self.env.set(name, value)
        logger.debug("Assigned %s = %d", name, value)
        return Result.success(value)

    def _assign(self, line: str) -> Tuple[str, int]:
        name = line.partition('=')[0].strip()
        if not IDENTIFIER_RE.fullmatch(name):
            raise IdentifierError(f"Invalid identifier: {name!r}")
        try:
            # tokens[0] is the name, tokens[1] the '='
            return name, self._run(normalize(line)[2:])
        except CalculatorError as e:
            raise AssignmentError(f"Right-hand side of {name!r} failed: {e}") from e

    def process(self, line: str) -> Result:
        """Route a non-command line to assign or evaluate. Blank lines give an empty Result."""
        if not line.strip():
            return Result()
        if '=' in line:
            return self.assign(line)
        return self.evaluate(line)

# --------------------------
# REPL, help
# --------------------------

HELP_TEXT = """
Smart calculator help
---------------------
Enter an expression to evaluate it, or 'name = expression' to store a variable.

Supported operations (high -> low precedence):
  ^          exponentiation (integer exponent >= 0)
  * /        multiplication, division (truncates toward zero)
  + -        addition, subtraction (runs of signs fold: 1 - - 2 == 3)
  ( )        grouping
Operators of equal precedence are evaluated left to right.

Numbers are integers of any size. Variable names are letters only (case-sensitive).

Commands:
  /help      show this help
  /vars      list variables
  /exit      quit

Examples:
  > a = 4
  > b = -a + 10
  > (a + b) * 2 ^ 3
  80
"""


class REPL:
    """Reads lines, dispatches '/' commands and prints results or error messages."""

    COMMAND_MARKER = '/'

    def __init__(self, calculator: Optional[Calculator] = None,
                 settings: Optional[CalculatorSettings] = None,
                 input_func: Optional[Callable[[str], str]] = None,
                 output: Callable[[str], None] = print):
        self.calculator = calculator if calculator is not None else Calculator()
        self.settings = settings if settings is not None else CalculatorSettings()
        self.output = output
        self.running = True
        self._input_func = input_func
        self._session: Optional[PromptSession] = None

    def _make_history(self) -> History:
        path = self.settings.history_file
        if not path:
            return InMemoryHistory()
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        return FileHistory(path)

    def _read_line(self) -> str:
        if self._input_func is not None:
            return self._input_func(self.settings.prompt)
        if not sys.stdin.isatty():
            return input(self.settings.prompt)
        if self._session is None:
            self._session = PromptSession(history=self._make_history())
        return self._session.prompt(self.settings.prompt)

    def _run_command(self, line: str) -> str:
        cmd = line.strip()
        logger.debug("Dispatching command %r", cmd)
        if cmd == '/exit':
            self.running = False
            return "Bye!"
        if cmd == '/help':
            return HELP_TEXT.strip()
        if cmd == '/vars':
            items = self.calculator.env.items()
            if not items:
                return "(no variables)"
            return "\n".join(f"{name} = {value}" for name, value in items)
        return ErrorKind.UNKNOWN_COMMAND.message

    def handle_line(self, line: str) -> Optional[str]:
        """Process one input line and return the text to print, if any."""
        if line.lstrip().startswith(self.COMMAND_MARKER):
            return self._run_command(line)
        result = self.calculator.process(line)
        if not result.ok:
            return result.error.message
        if result.value is None or '=' in line:
            return None
        return str(result.value)

    def run(self) -> None:
        """Loop until /exit or end of input."""
        while self.running:
            try:
                line = self._read_line()
            except KeyboardInterrupt:
                continue
            except EOFError:
                break
            out = self.handle_line(line)
            if out is not None:
                self.output(out)

# --------------------------
# Entry point
# --------------------------

def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Interactive integer calculator with variables.")
    parser.add_argument("--log-level", type=str, default=None,
                        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)")
    parser.add_argument("--prompt", type=str, default=None, help="Text shown before each input line")
    parser.add_argument("--history-file", type=str, default=None,
                        help="File keeping input line history between sessions")
    args = parser.parse_args(argv)

    try:
        settings = load_settings({
            'log_level': args.log_level,
            'prompt': args.prompt,
            'history_file': args.history_file,
        })
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    configure_logging(settings)
    if hasattr(sys, 'set_int_max_str_digits'):
        # results are printed in full, however many digits
        sys.set_int_max_str_digits(0)
    REPL(Calculator(), settings).run()
    return 0


if __name__ == '__main__':
    sys.exit(main())
