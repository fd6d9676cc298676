from collections.abc import Iterable, Reversible
from io import IOBase, StringIO
from json import dumps
from re import compile as regcomp
from shlex import quote as quote_shell
from typing import Callable, Optional, Union

from yaml import safe_dump

_newline_split = regcomp(r'\r?\n').split


class KeyValue(dict):
    newline = "\n"
    key_separator = ' = '
    value_separator: Optional[str] = ' '
    continuation_indent = "\t"
    buffer_io_class: Callable[[], IOBase] = StringIO

    print = print

    def newline_split(self, value):
        return _newline_split(value)

    def print_empty_value(self, fh: IOBase, key: str) -> None:
        self.print(key, end=self.newline, file=fh)

    def print_single_value(self, fh: IOBase, key: str, value: str) -> None:
        iterator = iter(self.newline_split(value))

        newline = self.newline
        self.print(key, next(iterator), sep=self.key_separator, end=newline, file=fh)
        continuation_indent = self.continuation_indent
        for line in iterator:
            self.print(continuation_indent, line, sep='', end=newline, file=fh)

    def print_value(self, fh, key, value) -> None:
        if value is None:
            self.print_empty_value(fh, key)
        elif isinstance(value, Iterable) and not isinstance(value, str):
            self.print_list_value(fh, key, value)
        else:
            self.print_single_value(fh, key, str(value))

    def print_list_value(self, fh, key, values) -> None:
        if not isinstance(values, Reversible):
            # Without a defined order the output would change from run to
            # run, so sort it.
            values = sorted(values)
        value_separator = self.value_separator
        if value_separator is None:
            for value in values:
                self.print_value(fh, key, value)
        else:
            self.print_single_value(fh, key, value_separator.join(map(str, values)))

    def __str__(self):
        with self.buffer_io_class() as fh:
            for key, value in self.items():
                self.print_value(fh, key, value)
            return fh.getvalue()


class ShellEnv(KeyValue):
    """Environment file as read by `docker compose` env_file and by sh."""

    key_separator = '='
    value_separator = ','
    continuation_indent = ''

    def print_empty_value(self, fh: IOBase, key: str) -> None:
        self.print(key, '', sep=self.key_separator, end=self.newline, file=fh)

    def print_single_value(self, fh: IOBase, key: str, value: str) -> None:
        self.print(
            key,
            quote_shell(value),
            sep=self.key_separator,
            end=self.newline,
            file=fh,
        )


class JSON(dict):
    indent: Union[int, str] = "\t"

    def __str__(self):
        return dumps(self, indent=self.indent) + "\n"


class ComposeFile(dict):
    """Compose document, keys kept in insertion order."""

    def __str__(self):
        return safe_dump(dict(self), default_flow_style=False, sort_keys=False)


__all__ = ('ComposeFile', 'JSON', 'KeyValue', 'ShellEnv')
