"""
CalcNote Constants Module
Contains global constants, mappings, and configuration defaults.
"""

import math


# =============================================================================
# RECOMPUTE CONSTANTS
# =============================================================================

# Quiescence window after the last edit before a recompute pass runs
DEBOUNCE_DELAY_MS = 300

# Significant digits used when formatting results for display
DEFAULT_PRECISION = 14

# Per-line evaluation budget in seconds (None disables the check)
LINE_TIMEOUT = None

# Operations slower than this are written to the performance log
PERF_LOG_THRESHOLD_MS = 10

# Number of performance log entries kept in memory
PERF_LOG_MAX_ENTRIES = 50

# Set to True to print diagnostics to the console
DEBUG = False


# =============================================================================
# UNIT CONVERSION CONSTANTS
# =============================================================================

# Unit abbreviation mapping
UNIT_ABBR = {
    # Distance
    'meter': 'm', 'meters': 'm', 'm': 'm',
    'kilometer': 'km', 'kilometers': 'km', 'km': 'km',
    'centimeter': 'cm', 'centimeters': 'cm', 'cm': 'cm',
    'mile': 'mi', 'miles': 'mi', 'mi': 'mi',
    'yard': 'yd', 'yards': 'yd', 'yd': 'yd',
    'foot': 'ft', 'feet': 'ft', 'ft': 'ft',
    'inch': 'inch', 'inches': 'inch',

    # Weight
    'pound': 'lb', 'pounds': 'lb', 'lb': 'lb', 'lbs': 'lb',
    'kilogram': 'kg', 'kilograms': 'kg', 'kg': 'kg',
    'gram': 'g', 'grams': 'g', 'g': 'g',
    'ounce': 'oz', 'ounces': 'oz', 'oz': 'oz',
    'ton': 't', 'tons': 't', 't': 't',

    # Volume
    'liter': 'L', 'liters': 'L', 'litre': 'L', 'litres': 'L', 'L': 'L',
    'gallon': 'gal', 'gallons': 'gal', 'gal': 'gal',
    'quart': 'qt', 'quarts': 'qt', 'qt': 'qt',
    'pint': 'pt', 'pints': 'pt', 'pt': 'pt',
    'cup': 'cup', 'cups': 'cup',
    'milliliter': 'mL', 'milliliters': 'mL', 'mL': 'mL',

    # Angle
    'degree': 'deg', 'degrees': 'deg', 'deg': 'deg',
    'radian': 'rad', 'radians': 'rad', 'rad': 'rad',
}

# Words that separate a quantity from its target unit
CONVERSION_KEYWORDS = ('to', 'in')


# =============================================================================
# MATHEMATICAL FUNCTIONS
# =============================================================================

def lcm(a, b):
    """Calculate the Least Common Multiple of two numbers"""
    return abs(a * b) // math.gcd(a, b)

# All math functions available in expressions
MATH_FUNCS = {
    # Trigonometric functions
    'sin': math.sin, 'cos': math.cos, 'tan': math.tan,
    'asin': math.asin, 'acos': math.acos, 'atan': math.atan,
    'sinh': math.sinh, 'cosh': math.cosh, 'tanh': math.tanh,
    'asinh': math.asinh, 'acosh': math.acosh, 'atanh': math.atanh,
    'degrees': math.degrees, 'radians': math.radians,
    # Power and logarithmic functions
    'sqrt': math.sqrt, 'pow': math.pow, 'exp': math.exp,
    'log': math.log, 'log10': math.log10, 'log2': math.log2,
    # Other mathematical functions
    'ceil': math.ceil, 'floor': math.floor, 'abs': abs,
    'factorial': math.factorial, 'gcd': math.gcd, 'lcm': lcm,
    'round': round, 'min': min, 'max': max, 'sum': sum, 'len': len,
    # Constants
    'pi': math.pi, 'e': math.e, 'tau': math.tau,
    'inf': math.inf, 'nan': math.nan,
}


# =============================================================================
# CONFIGURATION
# =============================================================================

# Persistence
STORAGE_FILE = 'calcnote.json'
STORAGE_KEY = 'calcnote-expressions'

# Document shown on first launch
INITIAL_TEXT = """1.2 * (2 + 4.5)
12.7 cm to inch
sin(45 * pi / 180) ^ 2
9 / 3 + 2j
a = 3
a * 2
"""

# API server
SERVER_HOST = '127.0.0.1'
SERVER_PORT = 8000

# Application metadata
APP_NAME = "CalcNote"
APP_VERSION = "1.0.0"
