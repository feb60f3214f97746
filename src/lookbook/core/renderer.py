"""Lookbook page rendering.

:class:`CompositeRenderer` assembles the generated archetype images into one
portrait page: a dark stippled background, a two-part neon title, and one
"photo card" per archetype laid out on a fixed grid.  Each card is slightly
rotated, casts a blurred drop shadow, has an off-white border, shows the
image fitted inside it with a handwritten caption underneath, and carries two
strips of translucent tape on opposite corners.

Layout is computed up front by :func:`compute_layout`, which returns one
:class:`PanelPlacement` (cell, card box, centre, rotation) per image.  Drawing
each panel only consumes its placement, so nothing carries over from one
panel to the next.

Card size
---------
Cards are ``card_width_ratio`` of the cell width with a 1:``card_aspect``
shape, shrunk if necessary so that the card rotated by the maximum angle
still fits inside its cell.  Panels therefore never overlap, whatever
rotations are drawn.

Randomness
----------
Texture and rotations come from a ``random.Random`` instance.  Pass ``seed``
to get byte-identical output for identical input; unseeded renders differ but
always keep canvas size, panel count and captions.
"""

from __future__ import annotations

import io
import logging
import math
import random
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, ImageDraw, ImageFilter, ImageFont, ImageOps, UnidentifiedImageError

from .config import LookbookConfig
from .errors import CompositionError
from .models import EncodedImage

logger = logging.getLogger(__name__)

BACKGROUND_COLOR = (45, 45, 45)
CARD_COLOR = (240, 240, 229)
CAPTION_COLOR = (17, 17, 17)
TAPE_COLOR = (255, 255, 180, 153)
SHADOW_ALPHA = 0.7
TITLE_PARTS = (("HAMBURG", (255, 0, 255)), ("'84", (0, 255, 255)))

Font = ImageFont.FreeTypeFont | ImageFont.ImageFont


@dataclass(frozen=True)
class Box:
    """Axis-aligned rectangle in canvas pixels."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2

    def intersects(self, other: Box) -> bool:
        return (
            self.x < other.right
            and other.x < self.right
            and self.y < other.bottom
            and other.y < self.bottom
        )

    def contains(self, other: Box) -> bool:
        return (
            self.x <= other.x
            and self.y <= other.y
            and other.right <= self.right
            and other.bottom <= self.bottom
        )


@dataclass(frozen=True)
class LayoutSpec:
    """Page geometry.  Defaults reproduce the reference A4 lookbook."""

    canvas_width: int = 2480
    canvas_height: int = 3508
    columns: int = 2
    rows: int = 3
    padding: int = 100
    title_margin: int = 550
    card_width_ratio: float = 0.9
    card_aspect: float = 1.25
    max_rotation: float = 0.075  # radians, about 4.3 degrees
    inset: int = 35
    caption_space: int = 100
    tape_length: int = 180
    tape_width: int = 50
    texture_dots: int = 150_000
    jpeg_quality: int = 90

    @classmethod
    def from_config(cls, config: LookbookConfig) -> LayoutSpec:
        return cls(
            canvas_width=config.canvas_width,
            canvas_height=config.canvas_height,
            columns=config.grid_columns,
            rows=config.grid_rows,
            padding=config.grid_padding,
            title_margin=config.title_margin,
            texture_dots=config.texture_dots,
            jpeg_quality=config.jpeg_quality,
        )

    @property
    def capacity(self) -> int:
        return self.columns * self.rows

    @property
    def cell_width(self) -> float:
        return (self.canvas_width - self.padding * (self.columns + 1)) / self.columns

    @property
    def cell_height(self) -> float:
        content_height = self.canvas_height - self.title_margin
        return (content_height - self.padding * (self.rows + 1)) / self.rows

    def card_size(self) -> tuple[int, int]:
        """Card width and height, small enough to stay in the cell when rotated."""
        cos_r, sin_r = math.cos(self.max_rotation), math.sin(self.max_rotation)
        width = min(
            self.cell_width * self.card_width_ratio,
            self.cell_width / (cos_r + self.card_aspect * sin_r),
            self.cell_height / (self.card_aspect * cos_r + sin_r),
        )
        width = math.floor(width)
        height = math.floor(width * self.card_aspect)
        if width <= 2 * self.inset or height <= 2 * self.inset + self.caption_space:
            raise CompositionError(f"Canvas too small for a {self.columns}x{self.rows} grid")
        return width, height


@dataclass(frozen=True)
class PanelPlacement:
    """Where and how one image is drawn."""

    index: int
    caption: str
    cell: Box
    card: Box
    rotation: float  # radians

    @property
    def center(self) -> tuple[float, float]:
        return self.card.center

    def rotated_bounds(self) -> Box:
        """Bounding box of the card after rotation."""
        cos_r, sin_r = abs(math.cos(self.rotation)), abs(math.sin(self.rotation))
        width = self.card.width * cos_r + self.card.height * sin_r
        height = self.card.width * sin_r + self.card.height * cos_r
        cx, cy = self.center
        return Box(cx - width / 2, cy - height / 2, width, height)


def compute_layout(
    captions: list[str], spec: LayoutSpec, rng: random.Random | None = None
) -> list[PanelPlacement]:
    """Place one card per caption on the grid, row by row.

    Raises:
        CompositionError: If there are no captions or more than the grid holds.
    """
    if not captions:
        raise CompositionError("Cannot build a lookbook without images")
    if len(captions) > spec.capacity:
        raise CompositionError(
            f"{len(captions)} images do not fit a {spec.columns}x{spec.rows} grid"
        )

    rng = rng or random.Random()
    card_width, card_height = spec.card_size()
    placements: list[PanelPlacement] = []

    for index, caption in enumerate(captions):
        row, col = divmod(index, spec.columns)
        cell = Box(
            x=spec.padding * (col + 1) + spec.cell_width * col,
            y=spec.title_margin + spec.padding * (row + 1) + spec.cell_height * row,
            width=spec.cell_width,
            height=spec.cell_height,
        )
        cx, cy = cell.center
        card = Box(cx - card_width / 2, cy - card_height / 2, card_width, card_height)
        rotation = rng.uniform(-spec.max_rotation, spec.max_rotation)
        placements.append(PanelPlacement(index, caption, cell, card, rotation))

    return placements


def load_font(path: Path | None, size: int) -> Font:
    """Load a TrueType font, falling back to Pillow's built-in font."""
    if path is not None:
        try:
            return ImageFont.truetype(str(path), size)
        except OSError as e:
            logger.warning("Could not load font %s (%s); using default font.", path, e)
    return ImageFont.load_default(size=size)


def decode_image(image: EncodedImage) -> Image.Image:
    """Decode an encoded image into an RGB PIL image.

    Raises:
        CompositionError: If the bytes are not a readable image.
    """
    try:
        decoded = Image.open(io.BytesIO(image.payload))
        decoded.load()
    except (UnidentifiedImageError, OSError) as e:
        raise CompositionError(f"Failed to load image: {e}") from e
    return ImageOps.exif_transpose(decoded).convert("RGB")


def fit_within(size: tuple[int, int], box: tuple[int, int]) -> tuple[int, int]:
    """Largest size with the aspect ratio of *size* that fits in *box*."""
    width, height = size
    box_width, box_height = box
    scale = min(box_width / width, box_height / height)
    return max(1, round(width * scale)), max(1, round(height * scale))


class CompositeRenderer:
    """Renders the lookbook page.

    Args:
        spec: Page geometry.
        title_font_path: TrueType font for the title.
        caption_font_path: Handwritten-style TrueType font for captions.
        seed: Seed for texture and rotations (None for fresh randomness).
    """

    def __init__(
        self,
        spec: LayoutSpec | None = None,
        *,
        title_font_path: Path | None = None,
        caption_font_path: Path | None = None,
        seed: int | None = None,
    ) -> None:
        self.spec = spec or LayoutSpec()
        self._title_font_path = title_font_path
        self._caption_font_path = caption_font_path
        self._rng = random.Random(seed)

    @classmethod
    def from_config(cls, config: LookbookConfig, seed: int | None = None) -> CompositeRenderer:
        return cls(
            LayoutSpec.from_config(config),
            title_font_path=config.title_font_path,
            caption_font_path=config.caption_font_path,
            seed=seed,
        )

    def compose(self, images: Mapping[str, EncodedImage]) -> EncodedImage:
        """Render *images* (caption -> image) and encode the page as JPEG.

        Raises:
            CompositionError: If the mapping is empty, too large, or holds an
                unreadable image.
        """
        page, _ = self.render(images)
        buffer = io.BytesIO()
        page.save(buffer, format="JPEG", quality=self.spec.jpeg_quality)
        logger.info("Lookbook page encoded (%d bytes).", buffer.tell())
        return EncodedImage(media_type="image/jpeg", payload=buffer.getvalue())

    def render(self, images: Mapping[str, EncodedImage]) -> tuple[Image.Image, list[PanelPlacement]]:
        """Render the page and return it with the placements used."""
        captions = list(images)
        placements = compute_layout(captions, self.spec, self._rng)
        decoded = [decode_image(images[caption]) for caption in captions]

        logger.info("Composing lookbook page with %d panels.", len(placements))
        canvas = self._draw_background()
        self._draw_title(canvas)
        caption_font = load_font(self._caption_font_path, 80)
        for placement, image in zip(placements, decoded):
            self._draw_panel(canvas, placement, image, caption_font)
        return canvas, placements

    # -- Background and title ----------------------------------------------

    def _draw_background(self) -> Image.Image:
        spec = self.spec
        canvas = Image.new("RGB", (spec.canvas_width, spec.canvas_height), BACKGROUND_COLOR)
        if spec.texture_dots == 0:
            return canvas

        texture = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(texture)
        rng = self._rng
        for _ in range(spec.texture_dots):
            shade = rng.randint(10, 59)
            alpha = int(rng.random() * 0.5 * 255)
            x = rng.randrange(spec.canvas_width)
            y = rng.randrange(spec.canvas_height)
            draw.rectangle((x, y, x + 1, y + 1), fill=(shade, shade, shade, alpha))

        canvas.paste(texture, (0, 0), texture)
        return canvas

    def _draw_title(self, canvas: Image.Image) -> None:
        margin = self.spec.title_margin
        if margin == 0:
            return

        font = load_font(self._title_font_path, max(1, round(margin * 0.4)))
        centre_x = canvas.width / 2
        rows = (margin * 180 / 550, margin * 400 / 550)

        for (text, color), y in zip(TITLE_PARTS, rows):
            glow = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
            ImageDraw.Draw(glow).text((centre_x, y), text, font=font, fill=color + (255,), anchor="mm")
            glow = glow.filter(ImageFilter.GaussianBlur(20))
            # Two passes make the halo visible against the dark background.
            canvas.paste(glow, (0, 0), glow)
            canvas.paste(glow, (0, 0), glow)
            ImageDraw.Draw(canvas).text((centre_x, y), text, font=font, fill=color, anchor="mm")

    # -- Panels -------------------------------------------------------------

    def _draw_panel(
        self,
        canvas: Image.Image,
        placement: PanelPlacement,
        image: Image.Image,
        caption_font: Font,
    ) -> None:
        spec = self.spec
        card_width, card_height = int(placement.card.width), int(placement.card.height)
        margin = spec.tape_length  # room for tape sticking out past the card

        layer = Image.new("RGBA", (card_width + 2 * margin, card_height + 2 * margin), (0, 0, 0, 0))
        card = self._build_card(card_width, card_height, image, placement.caption, caption_font)
        layer.paste(card, (margin, margin))

        card_mask = Image.new("L", layer.size, 0)
        card_mask.paste(255, (margin, margin, margin + card_width, margin + card_height))

        self._draw_tape(layer, margin, card_width, card_height)

        degrees = -math.degrees(placement.rotation)
        rotated = layer.rotate(degrees, resample=Image.Resampling.BICUBIC, expand=True)
        rotated_mask = card_mask.rotate(degrees, resample=Image.Resampling.BICUBIC, expand=True)

        cx, cy = placement.center
        x = round(cx - rotated.width / 2)
        y = round(cy - rotated.height / 2)

        shadow_alpha = rotated_mask.point(lambda value: int(value * SHADOW_ALPHA))
        shadow_alpha = shadow_alpha.filter(ImageFilter.GaussianBlur(35 / 2))
        shadow = Image.new("RGBA", rotated.size, (0, 0, 0, 255))
        shadow.putalpha(shadow_alpha)

        canvas.paste(shadow, (x + 15, y + 20), shadow)
        canvas.paste(rotated, (x, y), rotated)

    def _build_card(
        self,
        width: int,
        height: int,
        image: Image.Image,
        caption: str,
        caption_font: Font,
    ) -> Image.Image:
        spec = self.spec
        card = Image.new("RGBA", (width, height), CARD_COLOR + (255,))

        container = (width - spec.inset * 2, height - spec.inset * 2 - spec.caption_space)
        draw_size = fit_within(image.size, container)
        fitted = image.resize(draw_size, Image.Resampling.LANCZOS)
        image_x = (width - draw_size[0]) // 2
        image_y = spec.inset + (container[1] - draw_size[1]) // 2
        card.paste(fitted, (image_x, image_y))

        draw = ImageDraw.Draw(card)
        font = self._fit_caption_font(draw, caption, caption_font, width - spec.inset * 2)
        caption_y = height - spec.inset - spec.caption_space / 2
        draw.text((width / 2, caption_y), caption, font=font, fill=CAPTION_COLOR, anchor="mm")
        return card

    def _fit_caption_font(
        self, draw: ImageDraw.ImageDraw, caption: str, font: Font, max_width: int
    ) -> Font:
        size = getattr(font, "size", 80)
        while size > 10 and draw.textlength(caption, font=font) > max_width:
            size -= 4
            font = load_font(self._caption_font_path, size)
        return font

    def _draw_tape(self, layer: Image.Image, margin: int, card_width: int, card_height: int) -> None:
        """Draw tape across the top-left and bottom-right card corners.

        Each strip is centred on its corner with its long side across the
        corner diagonal, so it only covers the border, never the image.
        """
        tape = Image.new("RGBA", layer.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(tape)
        corners = (
            (margin, margin, math.radians(-45)),
            (margin + card_width, margin + card_height, math.radians(-45)),
        )
        half_length, half_width = self.spec.tape_length / 2, self.spec.tape_width / 2
        for cx, cy, angle in corners:
            cos_a, sin_a = math.cos(angle), math.sin(angle)
            points = []
            for dx, dy in (
                (-half_length, -half_width),
                (half_length, -half_width),
                (half_length, half_width),
                (-half_length, half_width),
            ):
                points.append((cx + dx * cos_a - dy * sin_a, cy + dx * sin_a + dy * cos_a))
            draw.polygon(points, fill=TAPE_COLOR)
        layer.alpha_composite(tape)
