"""The receiver interface and the no-op, in-memory and dispatching receivers."""