import functools
import logging
from typing import Type

from tunelab.utils.exceptions import TuneLabException


def handle_engine_errors(operation_name: str, wrap_as: Type[TuneLabException] = TuneLabException):
    """
    Decorator for engine entry points.

    Workbench errors pass through untouched. Anything else (a scikit-learn
    ValueError, a pandas KeyError, ...) is logged with its traceback and
    re-raised as `wrap_as`, naming the engine and the original error type.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except TuneLabException:
                raise
            except Exception as e:
                engine = args[0] if args else None
                logger = getattr(engine, 'logger', None) or logging.getLogger(__name__)
                where = type(engine).__name__ if engine is not None else func.__qualname__
                message = f"{operation_name} failed in {where}: {type(e).__name__}: {e}"
                logger.error(message, exc_info=True)
                raise wrap_as(message) from e
        return wrapper
    return decorator
