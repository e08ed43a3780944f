import ply.lex as lex

from calcas.errors import TokenError

tokens = (
    "ID", "NUMBER",
    "PLUS", "MINUS", "TIMES", "DIVIDE", "INTDIV", "MOD", "POWER",
    "LPAREN", "RPAREN", "COMMA", "PRIME",
    "EQUALS", "EQ", "NE", "LT", "LE", "GT", "GE",
)

# Operator symbol carried by each operator token; "**" is an alias of "^"
OPERATOR_SYMBOLS = {
    "PLUS": "+", "MINUS": "-", "TIMES": "*", "DIVIDE": "/", "INTDIV": "//",
    "MOD": "%", "POWER": "^", "LPAREN": "(", "RPAREN": ")", "COMMA": ",",
    "PRIME": "'", "EQUALS": "=", "EQ": "==", "NE": "!=", "LT": "<",
    "LE": "<=", "GT": ">", "GE": ">=",
}

t_POWER  = r"\*\*|\^"
t_INTDIV = r"//"
t_EQ     = r"=="
t_NE     = r"!="
t_LE     = r"<="
t_GE     = r">="
t_PLUS   = r"\+"
t_MINUS  = r"-"
t_TIMES  = r"\*"
t_DIVIDE = r"/"
t_MOD    = r"%"
t_LPAREN = r"\("
t_RPAREN = r"\)"
t_COMMA  = r","
t_PRIME  = r"'"
t_EQUALS = r"="
t_LT     = r"<"
t_GT     = r">"

t_ignore = " \t\r\n"


def t_NUMBER(t):
    r"0[xX][0-9a-fA-F]+|0[bB][01]+|(\d*\.\d+|\d+)([eE][+-]?\d+)?"
    text = t.value
    try:
        if text[:2] in ("0x", "0X"):
            t.value = float(int(text[2:], 16))
        elif text[:2] in ("0b", "0B"):
            t.value = float(int(text[2:], 2))
        else:
            t.value = float(text)
    except OverflowError:
        t.value = float("inf")
    return t


def t_ID(t):
    r"[a-zA-Z_][a-zA-Z0-9_]*"
    return t


def t_error(t):
    raise TokenError(f"invalid token at char {t.lexpos} ({t.value[0]})")


_raw_lexer = lex.lex()


def tokenize(text: str) -> list:
    """Split *text* into a list of ply ``LexToken`` objects.

    Each call works on a clone of the module lexer so tokenizing never
    shares position state between statements.

    Examples
    --------
    >>> [(tok.type, tok.value) for tok in tokenize("2x ^ 0b11")]
    [('NUMBER', 2.0), ('ID', 'x'), ('POWER', '^'), ('NUMBER', 3.0)]
    """
    lexer = _raw_lexer.clone()
    lexer.input(text)
    return list(iter(lexer.token, None))
