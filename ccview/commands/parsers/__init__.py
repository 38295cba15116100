from . import describe

ENTRY_PARSERS = [
    describe,
]
