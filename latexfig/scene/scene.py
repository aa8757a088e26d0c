"""Scene and drawable object data structures.

This module provides the data model for a figure: the Scene container, its
axes, and the drawable objects they hold (text, lines, patches, surfaces and
lights). Drawables form a tagged union discriminated on ``kind``.

Visibility follows the usual plotting convention: hiding an axes hides its
decorations (frame, ticks, background) but not its children, which draw
according to their own ``visible`` flag.
"""

from __future__ import annotations

import json
import uuid
from pathlib import Path
from typing import Annotated, Any, Iterator, Literal, Union

from pydantic import BaseModel, Field

Color = tuple[float, float, float]
ColorSpec = Union[Color, Literal["none"]]
Units = Literal["inches", "centimeters", "points", "pixels"]
Rect = tuple[float, float, float, float]

WHITE: Color = (1.0, 1.0, 1.0)
BLACK: Color = (0.0, 0.0, 0.0)

_UNITS_PER_INCH: dict[str, float] = {
    "inches": 1.0,
    "centimeters": 2.54,
    "points": 72.0,
}

_VERTICAL_LETTERS = {"top": "t", "cap": "t", "middle": "c", "baseline": "B", "bottom": "b"}
_HORIZONTAL_LETTERS = {"left": "l", "center": "c", "right": "r"}


def convert_length(
    value: float,
    from_units: Units,
    to_units: Units,
    screen_ppi: float = 96.0,
) -> float:
    """Convert a length between figure units.

    Pixels are logical screen pixels at ``screen_ppi``.
    """
    if from_units == to_units:
        return value
    per_inch = dict(_UNITS_PER_INCH, pixels=screen_ppi)
    return value / per_inch[from_units] * per_inch[to_units]


def _new_id() -> str:
    return str(uuid.uuid4())[:8]


class Drawable(BaseModel):
    """Fields shared by every drawable object."""

    id: str = Field(default_factory=_new_id, description="Unique identifier")
    name: str = Field(default="", description="Display name")
    visible: bool = Field(default=True, description="Whether the object is drawn")

    model_config = {"frozen": False}


class TextObject(Drawable):
    """A text label.

    ``string`` is either a single string or a list of lines. Positions are
    interpreted in ``coordinates``: data units of the parent axes, normalized
    axes units, or normalized figure units.
    """

    kind: Literal["text"] = "text"
    string: str | list[str] = Field(default="", description="Content or list of lines")
    position: tuple[float, ...] = Field(
        default=(0.0, 0.0),
        description="Anchor (x, y) or (x, y, z) for 3-D data coordinates",
    )
    coordinates: Literal["data", "axes", "figure"] = Field(default="data")
    font_size: float = Field(default=10.0, gt=0, description="Font size in points")
    horizontal_alignment: Literal["left", "center", "right"] = Field(default="left")
    vertical_alignment: Literal["top", "cap", "middle", "baseline", "bottom"] = Field(
        default="middle"
    )
    interpreter: Literal["latex", "tex", "none"] = Field(
        default="latex",
        description="How the content is parsed when typeset",
    )
    rotation: float = Field(default=0.0, description="Rotation in degrees")
    color: Color = Field(default=BLACK)

    @property
    def lines(self) -> list[str]:
        """Return the content as a list of lines."""
        if isinstance(self.string, str):
            return self.string.split("\n")
        return list(self.string)

    def is_blank(self) -> bool:
        """True if the content is empty or whitespace only."""
        if isinstance(self.string, str):
            return not self.string.strip()
        return all(not line.strip() for line in self.string)

    @property
    def alignment(self) -> str:
        """Vertical + horizontal position letters (e.g. ``"tl"``, ``"Bc"``)."""
        return (
            _VERTICAL_LETTERS[self.vertical_alignment]
            + _HORIZONTAL_LETTERS[self.horizontal_alignment]
        )


class LineObject(Drawable):
    """A polyline in data coordinates (2-D or 3-D)."""

    kind: Literal["line"] = "line"
    x: list[float] = Field(default_factory=list)
    y: list[float] = Field(default_factory=list)
    z: list[float] | None = Field(default=None)
    color: Color = Field(default=(0.0, 0.447, 0.741))
    line_width: float = Field(default=0.5, ge=0, description="Line width in points")
    line_style: Literal["-", "--", ":", "-."] = Field(default="-")
    alpha: float = Field(default=1.0, ge=0, le=1)


class PatchObject(Drawable):
    """A filled polygon in 2-D data coordinates."""

    kind: Literal["patch"] = "patch"
    vertices: list[tuple[float, float]] = Field(default_factory=list)
    face_color: ColorSpec = Field(default=(0.0, 0.447, 0.741))
    edge_color: ColorSpec = Field(default="none")
    line_width: float = Field(default=0.5, ge=0)
    alpha: float = Field(default=1.0, ge=0, le=1)


class SurfaceObject(Drawable):
    """A gridded surface. Drawn in 3-D on 3-D axes, as a color mesh otherwise."""

    kind: Literal["surface"] = "surface"
    x: list[list[float]] = Field(default_factory=list)
    y: list[list[float]] = Field(default_factory=list)
    z: list[list[float]] = Field(default_factory=list)
    colormap: str = Field(default="viridis")
    alpha: float = Field(default=1.0, ge=0, le=1)
    edge_color: ColorSpec = Field(default="none")


class LightObject(Drawable):
    """A directional light shading the surfaces of its axes."""

    kind: Literal["light"] = "light"
    azimuth: float = Field(default=315.0, description="Azimuth in degrees")
    elevation: float = Field(default=45.0, description="Elevation in degrees")


AxesChild = Annotated[
    Union[TextObject, LineObject, PatchObject, SurfaceObject, LightObject],
    Field(discriminator="kind"),
]


class AxesObject(Drawable):
    """An axes container placed on the figure in normalized units."""

    kind: Literal["axes"] = "axes"
    position: Rect = Field(
        default=(0.13, 0.11, 0.775, 0.815),
        description="(left, bottom, width, height) in normalized figure units",
    )
    color: ColorSpec = Field(default=WHITE, description="Axes background")
    projection: Literal["2d", "3d"] = Field(default="2d")
    xlim: tuple[float, float] | None = Field(default=None)
    ylim: tuple[float, float] | None = Field(default=None)
    zlim: tuple[float, float] | None = Field(default=None)
    view: tuple[float, float] = Field(
        default=(30.0, -60.0),
        description="3-D camera (elevation, azimuth) in degrees",
    )
    grid: bool = Field(default=False)
    children: list[AxesChild] = Field(default_factory=list)

    def add(self, child: Any) -> Any:
        """Append a child drawable and return it."""
        self.children.append(child)
        return child

    def add_text(self, string: str | list[str], position: tuple[float, ...], **kwargs: Any) -> TextObject:
        """Add a text object in data coordinates."""
        return self.add(TextObject(string=string, position=position, **kwargs))

    def set_title(self, string: str | list[str], **kwargs: Any) -> TextObject:
        """Add a title centred above the axes."""
        kwargs.setdefault("font_size", 11.0)
        return self.add(TextObject(
            string=string,
            position=(0.5, 1.02),
            coordinates="axes",
            horizontal_alignment="center",
            vertical_alignment="bottom",
            name="title",
            **kwargs,
        ))

    def set_xlabel(self, string: str, **kwargs: Any) -> TextObject:
        """Add an x-axis label centred below the axes."""
        return self.add(TextObject(
            string=string,
            position=(0.5, -0.08),
            coordinates="axes",
            horizontal_alignment="center",
            vertical_alignment="top",
            name="xlabel",
            **kwargs,
        ))

    def set_ylabel(self, string: str, **kwargs: Any) -> TextObject:
        """Add a y-axis label left of the axes, rotated 90 degrees."""
        return self.add(TextObject(
            string=string,
            position=(-0.1, 0.5),
            coordinates="axes",
            horizontal_alignment="center",
            vertical_alignment="bottom",
            rotation=90.0,
            name="ylabel",
            **kwargs,
        ))

    def add_line(self, x: list[float], y: list[float], z: list[float] | None = None, **kwargs: Any) -> LineObject:
        """Add a polyline."""
        return self.add(LineObject(x=list(x), y=list(y), z=None if z is None else list(z), **kwargs))

    def add_surface(self, x: Any, y: Any, z: Any, **kwargs: Any) -> SurfaceObject:
        """Add a gridded surface from nested sequences or 2-D arrays."""
        return self.add(SurfaceObject(
            x=[list(map(float, row)) for row in x],
            y=[list(map(float, row)) for row in y],
            z=[list(map(float, row)) for row in z],
            **kwargs,
        ))

    def add_light(self, azimuth: float = 315.0, elevation: float = 45.0, **kwargs: Any) -> LightObject:
        """Add a directional light."""
        return self.add(LightObject(azimuth=azimuth, elevation=elevation, **kwargs))


SceneChild = Annotated[Union[AxesObject, TextObject], Field(discriminator="kind")]

DrawableObject = Union[TextObject, LineObject, PatchObject, SurfaceObject, LightObject, AxesObject]


class Scene(BaseModel):
    """A figure: the root container of everything that gets exported.

    Geometry is given by ``position`` in ``units``. When
    ``paper_position_mode`` is ``"manual"`` the printed size comes from
    ``paper_position`` (in ``paper_units``) instead.
    """

    name: str = Field(default="Untitled Figure", description="Figure name")
    version: str = Field(default="1.0", description="Scene file version")

    position: Rect = Field(
        default=(1.0, 1.0, 5.6, 4.2),
        description="(left, bottom, width, height) on screen",
    )
    units: Units = Field(default="inches")
    paper_units: Units = Field(default="inches")
    paper_position_mode: Literal["auto", "manual"] = Field(default="auto")
    paper_size: tuple[float, float] = Field(default=(8.5, 11.0))
    paper_position: Rect = Field(default=(0.25, 2.5, 8.0, 6.0))
    color: ColorSpec = Field(default=WHITE, description="Figure background")

    children: list[SceneChild] = Field(default_factory=list)

    model_config = {"frozen": False}

    def add_axes(self, position: Rect = (0.13, 0.11, 0.775, 0.815), **kwargs: Any) -> AxesObject:
        """Add an axes container to the figure."""
        axes = AxesObject(position=position, **kwargs)
        self.children.append(axes)
        return axes

    def add_text(self, string: str | list[str], position: tuple[float, float], **kwargs: Any) -> TextObject:
        """Add a figure-level annotation in normalized figure units."""
        text = TextObject(string=string, position=position, coordinates="figure", **kwargs)
        self.children.append(text)
        return text

    def walk(self) -> Iterator[DrawableObject]:
        """Iterate over all drawables, depth first, in document order."""
        for child in self.children:
            yield child
            if isinstance(child, AxesObject):
                yield from child.children

    def axes(self) -> list[AxesObject]:
        """Return the direct child axes."""
        return [c for c in self.children if isinstance(c, AxesObject)]

    def texts(self) -> list[TextObject]:
        """Return every text object in traversal order."""
        return [obj for obj in self.walk() if isinstance(obj, TextObject)]

    def lights(self) -> list[LightObject]:
        """Return every light in traversal order."""
        return [obj for obj in self.walk() if isinstance(obj, LightObject)]

    def find(self, object_id: str) -> DrawableObject | None:
        """Get a drawable by ID."""
        for obj in self.walk():
            if obj.id == object_id:
                return obj
        return None

    def contains(self, object_id: str) -> bool:
        """Check whether a drawable with this ID belongs to the scene."""
        return self.find(object_id) is not None

    def parent_of(self, obj: DrawableObject) -> AxesObject | Scene | None:
        """Return the container holding ``obj``, or None if it is not in the scene."""
        for child in self.children:
            if child is obj:
                return self
            if isinstance(child, AxesObject) and any(c is obj for c in child.children):
                return child
        return None

    def position_in(self, units: Units, screen_ppi: float = 96.0) -> Rect:
        """Return ``position`` converted to other units."""
        return tuple(
            convert_length(v, self.units, units, screen_ppi) for v in self.position
        )  # type: ignore[return-value]

    def size_inches(self, screen_ppi: float = 96.0) -> tuple[float, float]:
        """Printed size of the figure in inches."""
        if self.paper_position_mode == "manual":
            _, _, w, h = self.paper_position
            unit = self.paper_units
        else:
            _, _, w, h = self.position
            unit = self.units
        return (
            convert_length(w, unit, "inches", screen_ppi),
            convert_length(h, unit, "inches", screen_ppi),
        )

    def save(self, path: str | Path) -> None:
        """Save scene to a JSON file.

        Args:
            path: Output file path
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2)

    @classmethod
    def load(cls, path: str | Path) -> Scene:
        """Load scene from a JSON file.

        Args:
            path: Input file path

        Returns:
            Loaded Scene
        """
        path = Path(path)
        with open(path) as f:
            data = json.load(f)

        return cls.model_validate(data)

    def __repr__(self) -> str:
        return f"Scene('{self.name}', {sum(1 for _ in self.walk())} objects)"
