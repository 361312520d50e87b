"""Image cropping applied when an avatar image is acquired."""

from io import BytesIO

from PIL import Image, ImageOps, UnidentifiedImageError

from core.exceptions import InvalidImageError
from domain.entities.avatar import PickerOptions

# File extension -> Pillow format name.
FORMATS: dict[str, str] = {
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "png": "PNG",
    "webp": "WEBP",
    "gif": "GIF",
}

LOSSY_FORMATS = frozenset({"JPEG", "WEBP"})


def crop_box(width: int, height: int, aspect: tuple[int, int]) -> tuple[int, int, int, int]:
    """Largest centered box of the given aspect ratio inside ``width x height``."""
    aw, ah = aspect
    if aw <= 0 or ah <= 0:
        raise ValueError(f"Invalid aspect ratio: {aw}:{ah}")

    if width * ah > height * aw:
        # Too wide: trim the sides.
        new_w, new_h = height * aw // ah, height
    else:
        new_w, new_h = width, width * ah // aw

    left = (width - new_w) // 2
    top = (height - new_h) // 2
    return left, top, left + new_w, top + new_h


def crop_to_aspect(data: bytes, ext: str, options: PickerOptions) -> bytes:
    """Center-crop encoded image bytes to ``options.aspect``.

    EXIF orientation is applied first so the crop matches what the user saw.
    The result is re-encoded in the format implied by ``ext``.

    Raises:
        InvalidImageError: The bytes are not a decodable image, or ``ext``
            names a format that cannot be written back.
    """
    fmt = FORMATS.get(ext.lower())
    if fmt is None:
        raise InvalidImageError(f"Unsupported image type: {ext or 'unknown'}")

    try:
        with Image.open(BytesIO(data)) as opened:
            image = ImageOps.exif_transpose(opened)
            image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImageError("Acquired file is not a readable image") from e

    box = crop_box(image.width, image.height, options.aspect)
    if box != (0, 0, image.width, image.height):
        image = image.crop(box)

    if fmt == "JPEG" and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    save_kwargs: dict[str, int] = {}
    if fmt in LOSSY_FORMATS:
        save_kwargs["quality"] = max(1, min(95, round(options.quality * 100)))

    out = BytesIO()
    image.save(out, format=fmt, **save_kwargs)
    return out.getvalue()
