from typing import TYPE_CHECKING, Any, Optional, Sequence

from ..utils import *


class Decree:
    """A single host change that knows whether it is needed.

    _apply() first evaluates _update_needed and only then calls _update(),
    unless doing a dry run. Either way the result is reported in _summary."""

    name = ""
    applied = False

    if TYPE_CHECKING:

        @property
        def _update_needed(self) -> bool:
            return False

    else:
        _update_needed = False

    def _prepare(self, name: Optional[str] = None):
        if name and not self.name:
            self.name = name

    @fallback
    def updated(self):
        raise RuntimeError(f"{self}: not applied yet")

    @property
    def _summary(self):
        summary = {}
        if self.updated:
            summary['updated'] = True
        return summary

    def _apply(self, dry_run=False):
        if self.applied:
            raise RuntimeError(f"{self}: refused attempt to run twice")
        try:
            self.updated = bool(self._update_needed and hasattr(self, '_update'))
            if self.updated and not dry_run:
                self._update()
        finally:
            self.applied = True

        return self._summary

    def __str__(self):
        name = self.name
        if name:
            name = f"{name=}"
        return f"<{type(self).__name__}({name})>"


def extract_decrees(mapping: dict[str, Any]) -> dict[str, Decree]:
    return {
        name: decree
        for name, decree in mapping.items()
        if not name.startswith('_') and isinstance(decree, Decree)
    }


class Group(Initializer, Decree):
    @fallback
    def _decrees(self) -> Sequence[Decree]:
        raise RuntimeError(f"{self}: not initialized yet (did you forget _prepare()?)")

    def _prepare(self, name: Optional[str] = None):
        super()._prepare(name)
        decrees = extract_decrees(vars(self))
        for subname, decree in decrees.items():
            decree._prepare(subname)
        self._decrees = tuple(decrees.values())

    @initializer
    def updated(self) -> bool:
        return any(decree.updated for decree in self._decrees)

    @property
    def _summary(self) -> dict[str, Any]:
        return {
            name: summary
            for name, summary in (
                (decree.name, decree._summary) for decree in self._decrees
            )
            if summary
        }

    def _apply(self, *args, **kwargs) -> dict[str, Any]:
        if self.applied:
            raise RuntimeError(f"{self}: refused attempt to run twice")
        try:
            for decree in self._decrees:
                decree._apply(*args, **kwargs)
        finally:
            self.applied = True

        return self._summary


class Policy(Group):
    pass


__all__ = ('Decree', 'Group', 'Policy', 'extract_decrees')
