RED = '\033[0;31m'
GREEN = '\033[0;32m'
YELLOW = '\033[1;33m'
RESET = '\033[0m'


def _say(color: str, label: str, message: str, **kwargs) -> None:
    kwargs.setdefault('flush', True)
    print(f"{color}[{label}]{RESET} {message}", **kwargs)


def info(message: str, **kwargs) -> None:
    _say(GREEN, 'INFO', message, **kwargs)


def warning(message: str, **kwargs) -> None:
    _say(YELLOW, 'WARN', message, **kwargs)


def error(message: str, **kwargs) -> None:
    _say(RED, 'ERROR', message, **kwargs)


def banner(title: str, width: int = 40, **kwargs) -> None:
    rule = '=' * width
    print("", rule, title.center(width).rstrip(), rule, "", sep="\n", **kwargs)


__all__ = ('banner', 'error', 'info', 'warning')
