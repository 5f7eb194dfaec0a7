"""Image helpers: grid splitting, resizing and base64 conversion."""

import base64
import binascii
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from nanodirector_core_schemas import ValidationError


def _open(image_data: bytes) -> Image.Image:
    try:
        image = Image.open(BytesIO(image_data))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ValidationError(f"Not a readable image: {e}", field="image") from e
    return image


def _to_png(image: Image.Image) -> bytes:
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def split_grid(image_data: bytes, grid_size: int) -> list[bytes]:
    """Cut a composite into grid_size x grid_size PNG cells.

    Cells are floor(width / n) x floor(height / n) and are returned row by row,
    left to right. Remainder pixels on the right and bottom edges are dropped.

    Args:
        image_data: Encoded composite image
        grid_size: Number of rows (and columns)

    Returns:
        grid_size ** 2 encoded PNG cells
    """
    if grid_size < 1:
        raise ValidationError(f"Grid size must be positive, got {grid_size}", field="grid_size")

    image = _open(image_data)
    width, height = image.size
    cell_w = width // grid_size
    cell_h = height // grid_size
    if cell_w == 0 or cell_h == 0:
        raise ValidationError(
            f"Image of {width}x{height} is too small for a {grid_size}x{grid_size} grid",
            field="image",
        )

    cells = []
    for row in range(grid_size):
        for col in range(grid_size):
            box = (col * cell_w, row * cell_h, (col + 1) * cell_w, (row + 1) * cell_h)
            cells.append(_to_png(image.crop(box)))
    return cells


def resize_image(image_data: bytes, target_width: int = 512, quality: int = 80) -> bytes:
    """Scale an image to ``target_width`` (keeping aspect ratio) as JPEG.

    Used to shrink panels before sending them for text analysis.
    """
    image = _open(image_data)
    width, height = image.size
    target_height = max(1, round(height * target_width / width))
    resized = image.convert("RGB").resize((target_width, target_height), Image.LANCZOS)

    buffer = BytesIO()
    resized.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def strip_data_url(data: str) -> str:
    """Drop a ``data:image/...;base64,`` prefix if present."""
    if data.startswith("data:") and "," in data:
        return data.split(",", 1)[1]
    return data


def b64_to_bytes(data: str) -> bytes:
    try:
        return base64.b64decode(strip_data_url(data), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Invalid base64 image data: {e}", field="image") from e


def bytes_to_b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")
