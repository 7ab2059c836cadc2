"""Minimal persistent entity base consumed by the calendar domain models.

Storage itself belongs to an outer persistence layer. This base only carries
what the domain needs from it: identity, the New/Persisted state and a hook
that is told which fields changed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

logger = logging.getLogger(__name__)


class PersistentEntity(BaseModel):
    """Entity with identity by ``id`` and explicit change notification.

    Assigning a public field notifies ``_on_fields_changed`` with that field's
    name. ``apply_changes`` sets several (possibly nested, dotted) field paths
    and notifies once for all of them. In-place mutation of list fields is not
    observed; subclasses offer explicit mutators for that.
    """

    id: UUID = Field(default_factory=uuid4, description="Identity, kept by copies")

    model_config = ConfigDict(validate_assignment=True)

    _is_new: bool = PrivateAttr(default=True)
    _tracking_paused: int = PrivateAttr(default=0)

    @property
    def is_new(self) -> bool:
        return self._is_new

    def mark_persisted(self) -> None:
        """Record the first save; from now on changes are revisions."""
        self._is_new = False

    def __setattr__(self, name: str, value: Any) -> None:
        super().__setattr__(name, value)
        if name in type(self).model_fields:
            self._notify((name,))

    def apply_changes(self, changes: Mapping[str, Any]) -> None:
        """Apply ``{"field.sub_field": value}`` assignments as one logical change.

        Either every assignment is applied or, when one fails, none of them is.

        Raises:
            AttributeError: A path names an unknown field or a missing sub-object
            ValueError: A value fails validation
        """
        if not changes:
            return
        applied: list[tuple[Any, str, Any]] = []
        with self.untracked():
            try:
                for path, value in changes.items():
                    target, attribute = self._resolve_path(path)
                    previous = getattr(target, attribute)
                    setattr(target, attribute, value)
                    applied.append((target, attribute, previous))
            except (AttributeError, ValueError):
                for target, attribute, previous in reversed(applied):
                    setattr(target, attribute, previous)
                raise
        self._notify(tuple(changes))

    @contextmanager
    def untracked(self) -> Iterator[None]:
        """Suspend change notification, e.g. for representation-only changes."""
        self._tracking_paused += 1
        try:
            yield
        finally:
            self._tracking_paused -= 1

    def _resolve_path(self, path: str) -> tuple[Any, str]:
        *parents, attribute = path.split(".")
        target: Any = self
        for name in parents:
            target = getattr(target, name)
            if target is None:
                raise AttributeError(f"Cannot set {path!r}: {name!r} is not set")
        if isinstance(target, BaseModel) and attribute not in type(target).model_fields:
            raise AttributeError(f"{type(target).__name__} has no field {attribute!r}")
        return target, attribute

    def _notify(self, paths: Iterable[str]) -> None:
        if self._tracking_paused:
            return
        self._on_fields_changed(tuple(paths))

    def _on_fields_changed(self, paths: tuple[str, ...]) -> None:
        """Hook for subclasses; called once per logical change."""
        logger.debug("%s %s changed: %s", type(self).__name__, self.id, ", ".join(paths))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PersistentEntity):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)
