from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class BoundingBox(BaseModel):
    x: float
    y: float
    width: float
    height: float

    def center(self) -> tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2

    def at_relative(self, rx: float, ry: float) -> tuple[float, float]:
        """Viewport point at (rx, ry) in [0..1] of this box; inputs are clamped."""
        rx = max(0.0, min(1.0, rx))
        ry = max(0.0, min(1.0, ry))
        return self.x + rx * self.width, self.y + ry * self.height


class InteractiveFilters(BaseModel):
    """Options for a read-only listing of clickable elements in a frame."""

    roles: list[str] | None = Field(None, description="Only keep these roles, e.g. ['button', 'link']")
    enabled_only: bool = Field(False, description="Drop disabled elements")
    include_bounding_box: bool = Field(False, description="Attach each element's viewport box")
    limit: int = Field(200, ge=1, description="Maximum number of elements returned")
    selector: str = Field(
        'button, a[href], [role="button"], [role="link"], input[type="submit"], input[type="button"]',
        description="CSS selector for candidate elements",
    )


class InteractiveElement(BaseModel):
    index: int
    role: str
    name: str
    enabled: bool = True
    bounding_box: BoundingBox | None = None

    def describe(self) -> str:
        state = "enabled" if self.enabled else "disabled"
        line = f'{self.index}. {self.role} "{self.name}" [{state}]'
        if self.bounding_box is not None:
            b = self.bounding_box
            line += f"  bbox: x={round(b.x)} y={round(b.y)} w={round(b.width)} h={round(b.height)}"
        return line


class FrameProbe(BaseModel):
    """What the frame's own script context reports about itself."""

    model_config = ConfigDict(populate_by_name=True)

    url: str
    title: str = ""
    ready_state: str = Field("", alias="readyState")
    buttons: int = 0
    clickables: int = 0
    text_sample: str = Field("", alias="textSample")


class Rect(BaseModel):
    x: float
    y: float
    w: float
    h: float


class ChildFrameInfo(BaseModel):
    index: int
    id: str | None = None
    name: str | None = None
    src: str | None = None
    rect: Rect


class CanvasInfo(BaseModel):
    index: int
    rect: Rect


class BodyRect(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    w: float
    h: float
    scroll_height: float = Field(0, alias="scrollHeight")


class FrameInventory(BaseModel):
    """Child iframes, canvases and shadow hosts inside one frame."""

    model_config = ConfigDict(populate_by_name=True)

    iframes: list[ChildFrameInfo] = Field(default_factory=list)
    canvas: list[CanvasInfo] = Field(default_factory=list)
    shadow_hosts: int = Field(0, alias="shadowHosts")
    body_rect: BodyRect | None = Field(None, alias="bodyRect")


class HitTestResult(BaseModel):
    """The element ``elementFromPoint`` returns at a relative frame position."""

    model_config = ConfigDict(populate_by_name=True)

    tag: str | None = None
    id: str | None = None
    class_name: str | None = Field(None, alias="className")
    rect: BoundingBox | None = None
    pointer_events: str | None = Field(None, alias="pointerEvents")
    cursor: str | None = None
    src: str | None = None
    name: str | None = None


class FrameTreeEntry(BaseModel):
    """One protocol frame with the owner-selector path that reaches it."""

    frame_id: str
    url: str
    depth: int
    path: str = Field("", description="Chained owner selectors; empty for the top-level document")
    loader_id: str | None = None
