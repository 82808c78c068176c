"""
Appearance Detector
===================

Flags skins built to shrink, hide or crash: bad dimensions, invisible or
flat pixel data, and geometry with hostile names or implausible bones.
"""

import json
from collections import Counter
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from realmguard.core.exceptions import MalformedEvent

from .constants import (
    BANNED_GEOMETRY,
    BLACK_CHANNEL,
    BLACK_RATIO,
    CHECK_SKIN,
    EXTREME_ORIGIN_LIMIT,
    GEOMETRY_MALFORMED_MIN_LENGTH,
    GEOMETRY_PARSE_MIN_LENGTH,
    HOSTILE_ANIMATION_MARKERS,
    INVISIBLE_RATIO,
    LARGE_SKIN_BYTES,
    LARGE_SKIN_STRIDE,
    MAX_BONES,
    MAX_PERSONA_PIECES,
    MAX_SKIN_ASPECT_RATIO,
    MAX_TINY_CUBES,
    MIN_BONE_SCALE,
    MIN_CAPE_SIDE,
    MIN_SKIN_SIDE,
    MOSTLY_TRANSPARENT_RATIO,
    NEGATIVE_ORIGIN_LIMIT,
    NONSTANDARD_SKIN_MAX,
    NONSTANDARD_SKIN_MIN,
    SINGLE_COLOR_MIN_SAMPLES,
    SINGLE_COLOR_RATIO,
    SKIN_LENGTH_TOLERANCE,
    SMALL_SKIN_STRIDE,
    STANDARD_SKIN_SIZES,
    TINY_CUBE_SIDE,
    TRANSPARENT_ALPHA,
)
from .models import DetectionVerdict, Severity


# =============================================================================
# Field Helpers
# =============================================================================

def _as_int(skin: Mapping[str, Any], key: str) -> int:
    value = skin.get(key) or 0
    try:
        return int(value)
    except (TypeError, ValueError):
        raise MalformedEvent(key, value)


def _as_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, (list, tuple)):
        try:
            return bytes(value)
        except (TypeError, ValueError):
            raise MalformedEvent("skin_data", value)
    raise MalformedEvent("skin_data", type(value).__name__)


def _vector(value: Any, default: float = 0.0) -> List[float]:
    """Normalise a scalar or 3-sequence into three floats."""
    if value is None:
        return [default] * 3
    if isinstance(value, (int, float)):
        return [float(value)] * 3
    if isinstance(value, Sequence) and not isinstance(value, str):
        parts = [float(v) for v in list(value)[:3]]
        return parts + [default] * (3 - len(parts))
    raise MalformedEvent("geometry", value)


# =============================================================================
# Sections
# =============================================================================

def _check_dimensions(verdict: DetectionVerdict, width: int, height: int) -> None:
    if width <= 0 or height <= 0:
        verdict.add(f"Invalid dimensions ({width}x{height})", Severity.CRITICAL)
        return

    if width < MIN_SKIN_SIDE or height < MIN_SKIN_SIDE:
        verdict.add(f"Tiny skin ({width}x{height})", Severity.CRITICAL)

    if (width, height) not in STANDARD_SKIN_SIZES:
        if min(width, height) < NONSTANDARD_SKIN_MIN or max(width, height) > NONSTANDARD_SKIN_MAX:
            verdict.add(f"Non-standard dimensions ({width}x{height})", Severity.HIGH)

    ratio = max(width, height) / min(width, height)
    if ratio > MAX_SKIN_ASPECT_RATIO:
        verdict.add(f"Extreme aspect ratio ({ratio:.1f}:1)", Severity.HIGH)


def _check_pixels(verdict: DetectionVerdict, data: bytes, width: int, height: int) -> None:
    length = len(data)
    if length == 0:
        verdict.add("Empty skin data", Severity.CRITICAL)
        return

    expected = width * height * 4
    if expected > 0 and abs(length - expected) > SKIN_LENGTH_TOLERANCE:
        verdict.add(f"Skin data size mismatch (got {length}, expected {expected})", Severity.HIGH)

    if length < 4:
        return

    stride = LARGE_SKIN_STRIDE if length > LARGE_SKIN_BYTES else SMALL_SKIN_STRIDE
    colors: Counter = Counter()
    transparent = black = total = 0

    for i in range(0, length - 3, stride):
        r, g, b, a = data[i], data[i + 1], data[i + 2], data[i + 3]
        total += 1
        if a < TRANSPARENT_ALPHA:
            transparent += 1
        if r < BLACK_CHANNEL and g < BLACK_CHANNEL and b < BLACK_CHANNEL:
            black += 1
        colors[(r, g, b, a)] += 1

    transparent_ratio = transparent / total
    if transparent_ratio > INVISIBLE_RATIO:
        verdict.add(f"Invisible skin ({transparent_ratio:.0%} transparent)", Severity.CRITICAL)
    elif transparent_ratio > MOSTLY_TRANSPARENT_RATIO:
        verdict.add(f"Mostly transparent skin ({transparent_ratio:.0%} transparent)", Severity.HIGH)

    black_ratio = black / total
    if black_ratio > BLACK_RATIO:
        verdict.add(f"All-black skin ({black_ratio:.0%} black)", Severity.HIGH)

    single_ratio = colors.most_common(1)[0][1] / total
    if total > SINGLE_COLOR_MIN_SAMPLES and single_ratio > SINGLE_COLOR_RATIO:
        verdict.add(f"Single-color skin ({single_ratio:.0%} same color)", Severity.MEDIUM)


def _check_bones(verdict: DetectionVerdict, name: str, bones: Iterable[Mapping[str, Any]]) -> None:
    bones = list(bones)
    if len(bones) > MAX_BONES:
        verdict.add(f"Excessive bone count in {name} ({len(bones)} bones)", Severity.CRITICAL)

    tiny_cubes = 0
    negative_origins = 0
    extreme = False

    for bone in bones:
        if not isinstance(bone, Mapping):
            continue
        for cube in bone.get("cubes") or []:
            size = _vector(cube.get("size"))
            origin = _vector(cube.get("origin"))
            if all(side < TINY_CUBE_SIDE for side in size):
                tiny_cubes += 1
            if any(axis < NEGATIVE_ORIGIN_LIMIT for axis in origin):
                negative_origins += 1
            if any(abs(axis) > EXTREME_ORIGIN_LIMIT for axis in origin):
                extreme = True

        if bone.get("scale") is not None:
            scale = _vector(bone["scale"], default=1.0)
            if any(axis < MIN_BONE_SCALE for axis in scale):
                verdict.add(f"Tiny bone scale ({', '.join(f'{s:g}' for s in scale)})", Severity.HIGH)

    if tiny_cubes > MAX_TINY_CUBES:
        verdict.add(f"Many tiny bone cubes ({tiny_cubes})", Severity.HIGH)
    if negative_origins:
        verdict.add(f"Negative bone origins ({negative_origins})", Severity.CRITICAL)
    if extreme:
        verdict.add("Geometry with extreme positions", Severity.CRITICAL)


def _check_geometry(verdict: DetectionVerdict, skin: Mapping[str, Any]) -> None:
    geometry = skin.get("geometry_data") or ""
    if isinstance(geometry, (bytes, bytearray)):
        geometry = geometry.decode("utf-8", errors="replace")
    engine_version = str(skin.get("geometry_data_engine_version") or "")
    resource_patch = skin.get("skin_resource_patch") or {}
    if not isinstance(resource_patch, str):
        resource_patch = json.dumps(resource_patch)

    haystack = f"{geometry}{engine_version}{resource_patch}".lower()
    for banned in BANNED_GEOMETRY:
        if banned in haystack:
            verdict.add(f'Banned geometry pattern: "{banned}"', Severity.CRITICAL)
            break

    if not isinstance(geometry, str) or len(geometry) <= GEOMETRY_PARSE_MIN_LENGTH:
        return

    try:
        parsed = json.loads(geometry)
    except ValueError:
        if len(geometry) > GEOMETRY_MALFORMED_MIN_LENGTH:
            verdict.add("Malformed geometry data", Severity.MEDIUM)
        return

    if not isinstance(parsed, Mapping):
        return

    for key, definition in parsed.items():
        if key.startswith("geometry.") and isinstance(definition, Mapping):
            _check_bones(verdict, key, definition.get("bones") or [])


def _check_extras(verdict: DetectionVerdict, skin: Mapping[str, Any]) -> None:
    cape = skin.get("cape_data")
    if cape:
        cape_w = _as_int(skin, "cape_image_width")
        cape_h = _as_int(skin, "cape_image_height")
        if cape_w < MIN_CAPE_SIDE or cape_h < MIN_CAPE_SIDE:
            verdict.add(f"Tiny cape ({cape_w}x{cape_h})", Severity.MEDIUM)

    animation = skin.get("animation_data")
    if isinstance(animation, str) and animation:
        lowered = animation.lower()
        if any(marker in lowered for marker in HOSTILE_ANIMATION_MARKERS):
            verdict.add("Suspicious animation data", Severity.HIGH)

    pieces = skin.get("persona_pieces") or []
    if skin.get("is_persona_skin") and len(pieces) > MAX_PERSONA_PIECES:
        verdict.add(f"Excessive persona pieces ({len(pieces)})", Severity.MEDIUM)


# =============================================================================
# Detector
# =============================================================================

def check_skin(skin: Optional[Mapping[str, Any]]) -> DetectionVerdict:
    """
    Inspect a joining player's skin.

    Args:
        skin: Decoded skin record (skin_image_width, skin_image_height,
            skin_data, geometry_data, cape_data, ...). None means the game
            sent no skin block, which is not evidence of anything.

    Raises:
        MalformedEvent: A field has a type no client would send.
    """
    verdict = DetectionVerdict.clean(CHECK_SKIN)
    if skin is None:
        return verdict

    width = _as_int(skin, "skin_image_width")
    height = _as_int(skin, "skin_image_height")
    _check_dimensions(verdict, width, height)

    raw = skin.get("skin_data")
    if raw is None:
        verdict.add("Missing skin data", Severity.CRITICAL)
    else:
        _check_pixels(verdict, _as_bytes(raw), width, height)

    _check_geometry(verdict, skin)
    _check_extras(verdict, skin)
    return verdict


__all__ = ["check_skin"]
