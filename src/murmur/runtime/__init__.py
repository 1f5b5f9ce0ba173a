from murmur.runtime.repl import ChatREPL

__all__ = ["ChatREPL"]
