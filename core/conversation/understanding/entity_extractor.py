"""
Entity normalisation for guided-flow answers.

Answers arrive either as a clicked option label or as free text. This module
maps them onto the enumerated device and request fields, and parses the
synthetic "<signal>:<value>" inputs the caller sends once external work
(search, safety scan, persistence) has finished.
"""

import re
import logging
from typing import Optional, Tuple, List

from models.schemas import (
    OSFamily,
    DeviceType,
    Architecture,
    Platform,
    VersionPreference,
    SavedDevice,
)

logger = logging.getLogger(__name__)


class EntityExtractor:
    """Normalises raw answers into context values"""

    def __init__(self):
        self._initialize_patterns()

    def _initialize_patterns(self):
        """Initialize extraction patterns"""
        # Order matters: "chrome os" must be tested before generic matches
        self.os_family_patterns: List[Tuple[str, OSFamily]] = [
            (r"\bchrome\s?os\b|\bchromebook\b", OSFamily.CHROMEOS),
            (r"\bios\b|\biphone\b|\bipad\b", OSFamily.IOS),
            (r"\bmac\s?os\b|\bmac\b|\bos\s?x\b|\bmacbook\b", OSFamily.MACOS),
            (r"\bwindows\b|\bwin\s?\d+\b|\bwin\b", OSFamily.WINDOWS),
            (r"\bandroid\b", OSFamily.ANDROID),
            (r"\blinux\b|\bubuntu\b|\bdebian\b|\bfedora\b|\bmint\b", OSFamily.LINUX),
        ]

        self.device_type_patterns: List[Tuple[str, DeviceType]] = [
            (r"\blaptop\b|\bnotebook\b|\bultrabook\b", DeviceType.LAPTOP),
            (r"\bdesktop\b|\bpc\b|\btower\b|\ball-in-one\b", DeviceType.DESKTOP),
            (r"\bphone\b|\bsmartphone\b|\bmobile\b", DeviceType.PHONE),
            (r"\btablet\b|\bipad\b", DeviceType.TABLET),
        ]

        self.platform_patterns: List[Tuple[str, Platform]] = [
            (r"\bsteam\b", Platform.STEAM),
            (r"\bepic\b", Platform.EPIC),
            (r"\bapp\s?store\b", Platform.APP_STORE),
            (r"\bplay\s?store\b|\bgoogle play\b", Platform.PLAY_STORE),
            (r"\bstandalone\b|\bdirect download\b|\binstaller\b", Platform.STANDALONE),
        ]

        self.arch_patterns: List[Tuple[str, Architecture]] = [
            (r"\barm64\b|\baarch64\b|\bapple silicon\b|\bm[1-4]\b", Architecture.ARM64),
            (r"\bx64\b|\bx86_64\b|\bamd64\b|\b64-bit\b", Architecture.X64),
            (r"\bx86\b|\b32-bit\b", Architecture.X86),
        ]

        self.specific_version_pattern = re.compile(
            r"\b(?:v|ver|version)\.?\s*(\d+(?:\.\d+)*[a-z]?)\b", re.IGNORECASE
        )

        self.serial_declines = {
            "i don't know",
            "i dont know",
            "don't know",
            "dont know",
            "not sure",
            "i'm not sure",
            "no idea",
            "skip",
        }

        self.affirmatives = {"yes", "y", "yeah", "yep", "sure", "ok", "okay"}

    @staticmethod
    def _clean(text: Optional[str]) -> str:
        # Normalise curly apostrophes sent by mobile keyboards
        return (text or "").strip().lower().replace("’", "'")

    def normalize_os_family(self, text: str) -> Optional[OSFamily]:
        """Map free text or an option label onto an OS family"""
        cleaned = self._clean(text)
        if not cleaned:
            return None
        for pattern, family in self.os_family_patterns:
            if re.search(pattern, cleaned):
                return family
        return None

    def normalize_device_type(self, text: str) -> Optional[DeviceType]:
        """Map free text onto a device type; unknown answers become Other"""
        cleaned = self._clean(text)
        if not cleaned:
            return None
        for pattern, device_type in self.device_type_patterns:
            if re.search(pattern, cleaned):
                return device_type
        return DeviceType.OTHER

    def extract_arch(self, text: str) -> Optional[Architecture]:
        cleaned = self._clean(text)
        for pattern, arch in self.arch_patterns:
            if re.search(pattern, cleaned):
                return arch
        return None

    def extract_platform(self, text: str) -> Optional[Platform]:
        cleaned = self._clean(text)
        for pattern, platform in self.platform_patterns:
            if re.search(pattern, cleaned):
                return platform
        return None

    def extract_version(self, text: str) -> Tuple[VersionPreference, Optional[str]]:
        """Return the version preference and the specific version, if any"""
        match = self.specific_version_pattern.search(text or "")
        if match:
            return VersionPreference.SPECIFIC, match.group(1)
        return VersionPreference.LATEST, None

    def is_serial_declined(self, text: str) -> bool:
        cleaned = self._clean(text)
        return not cleaned or cleaned in self.serial_declines

    def is_affirmative(self, text: str) -> bool:
        words = re.findall(r"[a-z]+", self._clean(text))
        return bool(words) and words[0] in self.affirmatives

    def declines_saved_device(self, text: str) -> bool:
        """True for answers like "No, different device" at the saved-device prompt"""
        cleaned = self._clean(text)
        return bool(re.search(r"\bno\b", cleaned)) or "different" in cleaned

    def match_saved_device(self, text: str,
                           devices: List[SavedDevice]) -> Optional[SavedDevice]:
        """
        Find the saved device the user picked.

        Matches on the device name first, then on "<manufacturer> <model>".
        A generic confirmation ("Yes, use saved device") picks the first one.
        """
        if not devices:
            return None
        cleaned = self._clean(text)
        for device in devices:
            if cleaned == device.name.strip().lower():
                return device
        for device in devices:
            label = f"{device.manufacturer} {device.model}".strip().lower()
            if cleaned == label:
                return device
        return devices[0]

    def extract_signal(self, text: str, signal: str) -> Optional[str]:
        """
        Parse a caller signal such as "results:ok" or "history:abc123".

        Returns:
            The value after the prefix, or None if the input is not that signal
        """
        raw = (text or "").strip()
        prefix = f"{signal}:"
        if not raw.lower().startswith(prefix):
            return None
        value = raw[len(prefix):].strip()
        return value or None


# Singleton instance for easy access
entity_extractor = EntityExtractor()
