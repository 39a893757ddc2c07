"""
CalcNote Expression Runtime - parses, evaluates and formats line expressions.

Lines are Python expressions or assignments. ``^`` is exponentiation and
``<value> <unit> to <unit>`` converts physical quantities through pint.
"""

import ast
import io
import re
import tokenize
from functools import lru_cache
from typing import Any, Dict, Optional, Set

# Third-party imports
import pint
ureg = pint.UnitRegistry()

from .constants import MATH_FUNCS, UNIT_ABBR, CONVERSION_KEYWORDS, DEFAULT_PRECISION
from .scope_store import clone_value


class CalcNoteError(Exception):
    """Base class for errors reported on a single line"""
    pass


class ParseFailure(CalcNoteError):
    """The line text is not valid in the expression grammar"""
    pass


class EvaluationFailure(CalcNoteError):
    """The line parsed but evaluating it raised"""
    pass


CONVERSION_PATTERN = re.compile(
    r'^(?:(?P<target>[A-Za-z_]\w*)\s*=\s*)?'
    r'(?P<value>.+?)\s+(?P<from_unit>[A-Za-z_]\w*)\s+'
    r'(?:' + '|'.join(CONVERSION_KEYWORDS) + r')\s+'
    r'(?P<to_unit>[A-Za-z_]\w*)$'
)

ALLOWED_STATEMENTS = (ast.Expr, ast.Assign, ast.AugAssign)


def preprocess(text: str) -> str:
    """Normalize a line before parsing; ^ outside string literals becomes **"""
    source = text.strip()
    if '^' not in source:
        return source

    try:
        carets = [
            token.start[1]
            for token in tokenize.generate_tokens(io.StringIO(source).readline)
            if token.type == tokenize.OP and token.string in ('^', '^=')
        ]
    except (tokenize.TokenError, SyntaxError):
        # Unterminated input fails to parse either way
        return source.replace('^', '**')

    for column in reversed(carets):
        source = source[:column] + '**' + source[column + 1:]
    return source


def rewrite_conversion(source: str) -> Optional[str]:
    """Turn '12.7 cm to inch' into a call of the convert() builtin"""
    match = CONVERSION_PATTERN.match(source)
    if not match:
        return None

    call = "convert({}, {!r}, {!r})".format(
        match.group('value'), match.group('from_unit'), match.group('to_unit')
    )
    if match.group('target'):
        return f"{match.group('target')} = {call}"
    return call


@lru_cache(maxsize=1024)
def _parse_source(text: str) -> ast.Module:
    source = preprocess(text)
    try:
        tree = ast.parse(source, mode='exec')
    except SyntaxError as e:
        converted = rewrite_conversion(source)
        if converted is None:
            raise ParseFailure(f"SyntaxError: {e.msg} (char {e.offset})") from e
        try:
            tree = ast.parse(converted, mode='exec')
        except SyntaxError:
            raise ParseFailure(f"SyntaxError: {e.msg} (char {e.offset})") from e

    _validate(tree)
    return tree


def _validate(tree: ast.Module) -> None:
    for statement in tree.body:
        if not isinstance(statement, ALLOWED_STATEMENTS):
            raise ParseFailure("SyntaxError: only expressions and assignments are supported")
        if isinstance(statement, ast.Assign):
            for target in statement.targets:
                _validate_target(target)
        elif isinstance(statement, ast.AugAssign):
            if not isinstance(statement.target, ast.Name):
                raise ParseFailure("SyntaxError: invalid assignment target")

    for node in ast.walk(tree):
        if isinstance(node, ast.Name) and node.id.startswith('__'):
            raise ParseFailure(f"SyntaxError: access to '{node.id}' is not allowed")
        if isinstance(node, ast.Attribute) and node.attr.startswith('_'):
            raise ParseFailure(f"SyntaxError: access to '{node.attr}' is not allowed")


def _validate_target(target: ast.AST) -> None:
    if isinstance(target, ast.Name):
        return
    if isinstance(target, (ast.Tuple, ast.List)):
        for element in target.elts:
            _validate_target(element)
        return
    raise ParseFailure("SyntaxError: invalid assignment target")


class ExpressionRuntime:
    """
    Expression-language runtime used by the incremental evaluator.

    Provides parse, evaluate, format, clone, symbol enumeration and
    structural tree equality.
    """

    def __init__(self, precision: int = DEFAULT_PRECISION, functions: Optional[Dict[str, Any]] = None):
        self.precision = precision

        # Initialize global evaluation namespace
        self.globals = {
            "convert": self.convert,
            **MATH_FUNCS,
            **(functions or {}),
        }

    def parse(self, text: str) -> ast.Module:
        """
        Parse a line into a syntax tree.

        Raises:
            ParseFailure: the text is not a valid expression or assignment
        """
        return _parse_source(text)

    def evaluate(self, text: str, scope: Dict[str, Any]) -> Any:
        """
        Evaluate a line against ``scope``.

        Assigned names are written back into ``scope`` only after the whole
        line succeeded. The value of the last statement is returned; for an
        assignment that is the assigned value.

        Args:
            text (str): Line text
            scope (dict): Mutable variable bindings

        Returns:
            The evaluated value, or None for an empty line

        Raises:
            ParseFailure: the line does not parse
            EvaluationFailure: evaluating the line raised
        """
        tree = self.parse(text)
        namespace = {"__builtins__": {}, **self.globals, **scope}

        value = None
        try:
            for statement in tree.body:
                if isinstance(statement, ast.Expr):
                    code = compile(ast.Expression(statement.value), '<line>', 'eval')
                    value = eval(code, namespace)
                else:
                    module = ast.Module(body=[statement], type_ignores=[])
                    exec(compile(module, '<line>', 'exec'), namespace)
                    target = statement.targets[0] if isinstance(statement, ast.Assign) else statement.target
                    value = self._target_value(target, namespace)
        except CalcNoteError:
            raise
        except Exception as e:
            raise EvaluationFailure(f"{type(e).__name__}: {e}") from e

        for name in self.assigned_symbols(tree):
            if name in namespace:
                scope[name] = namespace[name]

        return value

    def _target_value(self, target: ast.AST, namespace: Dict[str, Any]) -> Any:
        if isinstance(target, ast.Name):
            return namespace[target.id]
        return tuple(self._target_value(element, namespace) for element in target.elts)

    def symbols(self, tree: ast.AST) -> Set[str]:
        """Names the tree reads"""
        names = set()
        for node in ast.walk(tree):
            if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Load):
                names.add(node.id)
            elif isinstance(node, ast.AugAssign) and isinstance(node.target, ast.Name):
                names.add(node.target.id)
        return names

    def assigned_symbols(self, tree: ast.AST) -> Set[str]:
        """Names the tree binds"""
        return {
            node.id for node in ast.walk(tree)
            if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Store)
        }

    def trees_equal(self, a: ast.AST, b: ast.AST) -> bool:
        """Structural equality ignoring positions and whitespace"""
        return ast.dump(a) == ast.dump(b)

    def clone(self, value: Any) -> Any:
        return clone_value(value)

    def convert(self, value, from_unit, to_unit):
        """Handle unit conversion expressions like '1 mile to km'"""
        from_unit = UNIT_ABBR.get(from_unit, from_unit)
        to_unit = UNIT_ABBR.get(to_unit, to_unit)

        if isinstance(value, ureg.Quantity):
            quantity = value.to(from_unit)
        else:
            quantity = ureg.Quantity(value, from_unit)
        return quantity.to(to_unit)

    def format(self, value: Any, precision: Optional[int] = None) -> str:
        """
        Format a value for display.

        Args:
            value: Evaluated value
            precision (int): Significant digits for floating point numbers

        Returns:
            str: Display text, empty for None
        """
        if precision is None:
            precision = self.precision

        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, int):
            return str(value)
        if isinstance(value, float):
            return f"{value:.{precision}g}"
        if isinstance(value, complex):
            return self._format_complex(value, precision)
        if isinstance(value, ureg.Quantity):
            return f"{self.format(value.magnitude, precision)} {value.units}"
        if isinstance(value, (list, tuple)):
            return "[" + ", ".join(self.format(item, precision) for item in value) + "]"
        if isinstance(value, dict):
            items = (f"{key!r}: {self.format(item, precision)}" for key, item in value.items())
            return "{" + ", ".join(items) + "}"
        if callable(value):
            return f"{getattr(value, '__name__', 'function')}(...)"
        return str(value)

    def _format_complex(self, value: complex, precision: int) -> str:
        real = self.format(value.real, precision)
        imag = self.format(abs(value.imag), precision)

        if value.imag == 0:
            return real
        if value.real == 0:
            return f"{'-' if value.imag < 0 else ''}{imag}i"
        sign = '-' if value.imag < 0 else '+'
        return f"{real} {sign} {imag}i"
