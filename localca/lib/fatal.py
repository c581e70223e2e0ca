"""Fatal-style error reporting and the bridge that turns it back into errors.

The certificate engine and the NSS engine report unrecoverable problems by
calling fatal(), which unwinds the stack like a process exit would. trap() is
the only place that signal is caught, so library callers get an error value
instead of a dead process.
"""

from collections.abc import Callable
from typing import Any, NoReturn

from .logging_config import LOGGER


class FatalError(BaseException):
    """Abrupt termination signal raised by fatal().

    Derives from BaseException so ordinary `except Exception` handlers inside
    the engines do not intercept it on the way to trap().
    """

    def __init__(self, value: Any) -> None:
        super().__init__(value)
        self.value = value


def fatal(*args: Any) -> NoReturn:
    """Abort the current engine operation.

    A single exception argument is carried as is; anything else is joined
    like print() into a new Exception.
    """
    if len(args) == 1 and isinstance(args[0], Exception):
        LOGGER.info(str(args[0]))
        raise FatalError(args[0])
    message = " ".join(str(arg) for arg in args)
    LOGGER.info(message)
    raise FatalError(Exception(message))


def fatal_err(err: BaseException, message: str) -> NoReturn:
    """Abort with 'ERROR: <message>: <err>'."""
    fatal(f"ERROR: {message}: {err}")


def _to_error(value: Any) -> Exception:
    if isinstance(value, Exception):
        return value
    if isinstance(value, str):
        return Exception(value)
    return RuntimeError(f"caught fatal error: {value!r}")


def trap(work: Callable[[], Any]) -> Exception | None:
    """Run work and convert any abrupt termination into a returned error.

    Args:
        work: Zero-argument callable that may call fatal() or sys.exit()

    Returns:
        None on normal completion, otherwise the error carried by the signal:
        an exception payload as is, a string payload wrapped in Exception, and
        anything else wrapped in a RuntimeError describing the value.
    """
    try:
        work()
    except FatalError as e:
        return _to_error(e.value)
    except SystemExit as e:
        return _to_error(e.code)
    except Exception as e:
        return e
    return None
