import logging as py_logging
import os
import sys
import traceback
import typing


PACKAGE_LOGGER = "modelkit"


def setup_logging(
    level: typing.Union[int, str] = py_logging.INFO,
    console: typing.Optional[typing.TextIO] = sys.stderr,
    log_file: typing.Optional[str] = None,
    format: typing.Optional[str] = None,
    datefmt: typing.Optional[str] = "%d/%b/%Y %H:%M:%S",
) -> py_logging.Logger:
    """
    Attach console and/or file handlers to the package logger.

    Calling this again replaces the handlers added by a previous call.

    :param level: Log level for the package logger.
    :param console: Console stream to log to. Set to None to disable console logging.
    :param log_file: Path to a log file. Parent directories are created if needed.
    :param format: Log message format.
    :param datefmt: Date format for log messages.
    :return: The package logger.
    """
    logger = py_logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, "_modelkit_handler", False):
            logger.removeHandler(handler)
            handler.close()

    handlers: typing.List[py_logging.Handler] = []
    if console:
        handlers.append(py_logging.StreamHandler(console))
    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True, mode=0o755)
        handlers.append(py_logging.FileHandler(log_file))

    formatter = py_logging.Formatter(
        format or "[%(asctime)s] %(name)s %(levelname)s: %(message)s",
        datefmt=datefmt,
    )
    for handler in handlers:
        handler.setFormatter(formatter)
        handler._modelkit_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    logger.setLevel(level)
    return logger


def modify_log_level(logger_name: str, level: typing.Union[int, str]) -> None:
    """
    Modify the log level of a logger.

    :param logger_name: Name of the logger.
    :param level: Log level to set.
    """
    py_logging.getLogger(logger_name).setLevel(level)


def get_function_name(exc: BaseException) -> str:
    """Get the name of the function in which an exception occurred."""
    return traceback.extract_tb(exc.__traceback__)[-1].name


def log_exception(
    exc: BaseException,
    message: typing.Optional[str] = None,
    *,
    logger: typing.Optional[py_logging.Logger] = None,
) -> None:
    """
    Log an exception with its traceback.

    Field errors are logged with the name of the offending field.

    :param exc: Exception object.
    :param message: Optional custom message to log.
    :param logger: Logger to use. Defaults to the package logger.
    """
    logger = logger or py_logging.getLogger(PACKAGE_LOGGER)
    text = f"{message}: {exc}" if message else f"An error occurred: {exc}"
    logger.error(text, exc_info=exc)

    field_name = getattr(exc, "field_name", None)
    if field_name:
        logger.error(f"Field: {field_name}")
    if exc.__traceback__ is not None:
        logger.error(f"Function: {get_function_name(exc)}")
