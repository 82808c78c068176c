"""
Device Detector
===============

Cross-checks what a joining client says about its platform, input and
hardware against what that platform can actually report.
"""

import re
from typing import Any, Mapping, Optional, Pattern

from .constants import (
    CHECK_DEVICE,
    CONSOLE_PLATFORMS,
    DEDICATED_PLATFORM,
    DEVICE_NAMES,
    DEVICE_PROFILES,
    GUI_SCALE_MAX,
    GUI_SCALE_MIN,
    HOSTILE_CLIENT_MARKERS,
    HOSTILE_CLIENT_NAMES,
    INPUT_CONTROLLER,
    INPUT_MODE_NAMES,
    INPUT_MOUSE,
    INPUT_UNKNOWN,
    MAX_DEVICE_MODEL_LENGTH,
    MIN_DEVICE_MODEL_LENGTH,
    MOBILE_PLATFORMS,
    NULL_DEVICE_ID,
    ONLINE_ID_PLATFORMS,
    SUSPICIOUS_LANGUAGE_MARKERS,
    UNKNOWN_PLATFORM,
    VALID_PLATFORM_IDS,
    VR_PLATFORMS,
)
from .models import DetectionVerdict, Severity


# =============================================================================
# Compiled Regex Patterns
# =============================================================================

PRINTABLE_ASCII: Pattern = re.compile(r"^[\x20-\x7E]*$")
HEX_ID: Pattern = re.compile(r"^[0-9a-f\-]+$", re.IGNORECASE)
LANGUAGE_CODE: Pattern = re.compile(r"^[a-z]{2}[_-][A-Z]{2}$")


def _first_marker(value: str, markers=HOSTILE_CLIENT_MARKERS) -> Optional[str]:
    lowered = value.lower()
    for marker in markers:
        if marker in lowered:
            return marker
    return None


def _int_field(device: Mapping[str, Any], key: str, default: int) -> int:
    value = device.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def device_name(platform: Optional[int]) -> str:
    return DEVICE_NAMES.get(platform, "Unknown")


# =============================================================================
# Detector
# =============================================================================

def check_device(platform: Optional[int], device: Mapping[str, Any]) -> DetectionVerdict:
    """
    Validate a joining client's device facts.

    Args:
        platform: Declared build platform id.
        device: Decoded client data (device_model, device_id,
            current_input_mode, default_input_mode, gui_scale,
            language_code, platform_online_id, third_party_name,
            is_editor_mode, trusted_skin).
    """
    verdict = DetectionVerdict.clean(CHECK_DEVICE)
    name = device_name(platform)
    profile = DEVICE_PROFILES.get(platform) if platform is not None else None

    # Platform id
    if platform is not None:
        if platform not in VALID_PLATFORM_IDS:
            verdict.add(f"Invalid build platform {platform}", Severity.CRITICAL)
        elif platform == UNKNOWN_PLATFORM:
            verdict.add("Device reports as Unknown (platform 0)", Severity.MEDIUM)
        elif platform == DEDICATED_PLATFORM:
            verdict.add("Player claims to be a Dedicated Server", Severity.CRITICAL)

    # Input mode
    input_mode = _int_field(device, "current_input_mode", INPUT_MOUSE)
    default_input = _int_field(device, "default_input_mode", input_mode)
    input_name = INPUT_MODE_NAMES.get(input_mode, str(input_mode))

    if profile is not None:
        expected_inputs, max_gui_scale = profile
        if platform in CONSOLE_PLATFORMS and input_mode != INPUT_CONTROLLER:
            verdict.add(f"{name} should use Controller, but using {input_name}", Severity.HIGH)
        elif platform in VR_PLATFORMS and input_mode != INPUT_CONTROLLER:
            verdict.add(f"{name} VR should use motion controls, but using {input_name}", Severity.MEDIUM)
        elif input_mode not in expected_inputs and input_mode != INPUT_UNKNOWN:
            verdict.add(f"{name} unexpectedly using {input_name}", Severity.LOW)

        gui_scale = _int_field(device, "gui_scale", -1)
        if gui_scale != -1:
            if gui_scale < GUI_SCALE_MIN or gui_scale > GUI_SCALE_MAX:
                verdict.add(f"GUI scale out of range: {gui_scale}", Severity.MEDIUM)
            elif gui_scale > max_gui_scale:
                verdict.add(f"{name} has GUI scale {gui_scale} (max {max_gui_scale})", Severity.LOW)

    # Device model
    model = str(device.get("device_model") or "")
    if model:
        marker = _first_marker(model)
        if marker:
            verdict.add(f'Device model contains "{marker}"', Severity.CRITICAL)
        if len(model) < MIN_DEVICE_MODEL_LENGTH:
            verdict.add(f'Device model too short: "{model}"', Severity.MEDIUM)
        if len(model) > MAX_DEVICE_MODEL_LENGTH:
            verdict.add(f"Device model suspiciously long: {len(model)} chars", Severity.HIGH)
        if not PRINTABLE_ASCII.match(model):
            verdict.add("Device model contains non-printable characters", Severity.HIGH)

    # Device id
    device_id = str(device.get("device_id") or "")
    if device_id == NULL_DEVICE_ID:
        verdict.add("Device ID is all zeros", Severity.HIGH)
    elif device_id and not HEX_ID.match(device_id):
        lowered = device_id.lower()
        if any(word in lowered for word in ("fake", "spoof", "null")):
            verdict.add("Device ID appears fake or spoofed", Severity.HIGH)

    # Locale
    language = str(device.get("language_code") or "")
    if language:
        lowered = language.lower()
        if any(marker in lowered for marker in SUSPICIOUS_LANGUAGE_MARKERS):
            verdict.add(f'Suspicious language code: "{language}"', Severity.MEDIUM)
        if not LANGUAGE_CODE.match(language):
            verdict.add(f'Language code format invalid: "{language}"', Severity.LOW)

    if platform in ONLINE_ID_PLATFORMS and not device.get("platform_online_id"):
        verdict.add(f"{name} missing platform online ID", Severity.MEDIUM)

    if device.get("is_editor_mode") is True:
        verdict.add("Player is using Editor Mode", Severity.HIGH)

    if device.get("trusted_skin") is False:
        verdict.add("Skin marked as untrusted by client", Severity.HIGH)

    third_party = str(device.get("third_party_name") or "")
    if third_party:
        marker = _first_marker(third_party, HOSTILE_CLIENT_NAMES)
        if marker:
            verdict.add(f'Third party name contains "{marker}"', Severity.CRITICAL)

    if platform in MOBILE_PLATFORMS and default_input == INPUT_MOUSE:
        verdict.add(f"{name} has keyboard as default input (possible emulator)", Severity.MEDIUM)

    return verdict


__all__ = ["check_device", "device_name"]
