"""Reversible scene mutation.

Exporting temporarily rewrites text content, visibility, background colors
and figure geometry. Every such change goes through a SceneEditor, which
remembers the original value of each (object, field) pair and writes them
back in reverse order. A SceneSnapshot additionally records every property
the export may touch, so ``preserved_scene`` can guarantee the scene is
left exactly as it was found, whatever happens inside the block.
"""

from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any, Iterator

from ..scene.scene import Scene

logger = logging.getLogger(__name__)

_SCENE_FIELDS = (
    "position",
    "units",
    "paper_units",
    "paper_position_mode",
    "paper_size",
    "paper_position",
    "color",
)

_OBJECT_FIELDS: dict[str, tuple[str, ...]] = {
    "text": (
        "visible",
        "string",
        "position",
        "interpreter",
        "horizontal_alignment",
        "vertical_alignment",
        "font_size",
    ),
    "axes": ("visible", "position", "color"),
    "line": ("visible",),
    "patch": ("visible",),
    "surface": ("visible",),
    "light": ("visible",),
}


@dataclass
class SceneSnapshot:
    """Copy of every scene property an export may mutate."""

    scene_values: dict[str, Any]
    object_values: list[tuple[Any, dict[str, Any]]] = field(default_factory=list)

    @classmethod
    def capture(cls, scene: Scene) -> SceneSnapshot:
        """Record the current state without altering the scene."""
        scene_values = {name: copy.deepcopy(getattr(scene, name)) for name in _SCENE_FIELDS}
        object_values = []
        for obj in scene.walk():
            names = _OBJECT_FIELDS[obj.kind]
            object_values.append(
                (obj, {name: copy.deepcopy(getattr(obj, name)) for name in names})
            )
        return cls(scene_values=scene_values, object_values=object_values)

    def restore(self, scene: Scene) -> None:
        """Write every recorded property back. Safe to call more than once."""
        for name, value in self.scene_values.items():
            setattr(scene, name, copy.deepcopy(value))
        for obj, values in self.object_values:
            for name, value in values.items():
                setattr(obj, name, copy.deepcopy(value))

    def matches(self, scene: Scene) -> bool:
        """Check whether the scene currently equals the recorded state."""
        if any(getattr(scene, n) != v for n, v in self.scene_values.items()):
            return False
        current = list(scene.walk())
        if len(current) != len(self.object_values):
            return False
        for (obj, values), now in zip(self.object_values, current):
            if obj is not now:
                return False
            if any(getattr(obj, n) != v for n, v in values.items()):
                return False
        return True


class SceneEditor:
    """Apply attribute changes while recording how to undo them.

    Can be used as a context manager; leaving the block rolls back every
    change made through the editor.
    """

    def __init__(self) -> None:
        self._undo: list[tuple[Any, str, Any]] = []
        self._seen: set[tuple[int, str]] = set()

    def set(self, target: Any, name: str, value: Any) -> None:
        """Set ``target.name = value``, remembering the original value."""
        key = (id(target), name)
        if key not in self._seen:
            self._seen.add(key)
            self._undo.append((target, name, getattr(target, name)))
        setattr(target, name, value)

    def rollback(self) -> None:
        """Restore every original value, most recent change first."""
        while self._undo:
            target, name, value = self._undo.pop()
            setattr(target, name, value)
        self._seen.clear()

    def __len__(self) -> int:
        return len(self._undo)

    def __enter__(self) -> SceneEditor:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.rollback()


@contextmanager
def preserved_scene(scene: Scene) -> Iterator[SceneEditor]:
    """Yield an editor for ``scene`` and restore the scene on exit.

    Restoration runs on every exit path, including exceptions raised
    inside the block.
    """
    snapshot = SceneSnapshot.capture(scene)
    editor = SceneEditor()
    try:
        yield editor
    finally:
        edits = len(editor)
        editor.rollback()
        if not snapshot.matches(scene):
            logger.warning("Scene was changed outside the export editor; restoring snapshot")
            snapshot.restore(scene)
        logger.debug(f"Scene state restored ({edits} edited properties)")
