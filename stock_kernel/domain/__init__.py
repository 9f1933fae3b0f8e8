"""
Pure domain layer of the stock kernel.

Value objects, enums and functions with no I/O.  Nothing in this package
imports SQLAlchemy or reads the wall clock outside ``SystemClock``.
"""
