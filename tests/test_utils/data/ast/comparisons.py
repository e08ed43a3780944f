EXPECTED = [
    ("lt", ("var", "a"), ("lt", ("var", "b"), ("var", "c"))),
    ("assign", ("var", "x"), ("assign", ("var", "y"), ("num", 3.0))),
    ("eq", ("add", ("num", 1.0), ("num", 2.0)), ("num", 3.0)),
    ("ne", ("var", "a"), ("neg", ("var", "b"))),
]
