EXPECTED = [
    ("mul", ("num", 2.0), ("var", "x")),
    ("sub", ("num", 2.0), ("num", 3.0)),
    ("mul", ("num", 2.0), ("add", ("var", "x"), ("num", 1.0))),
    ("mul", ("mul", ("var", "x"), ("var", "y")), ("var", "z")),
    ("mul", ("num", 3.0), ("pow", ("var", "x"), ("num", 2.0))),
    ("mul", ("add", ("var", "a"), ("var", "b")), ("sub", ("var", "a"), ("var", "b"))),
]
