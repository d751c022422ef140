"""Prompt text and option lists for the guided download flow"""
from typing import Dict, List, Optional

from models.schemas import SessionContext, Intent, OSFamily, RiskStatus


INTENT_OPTIONS = ["Driver", "Software", "Game"]
DEVICE_TYPE_OPTIONS = ["Laptop", "Desktop", "Phone", "Tablet"]
OS_FAMILY_OPTIONS = [family.value for family in OSFamily]
MANUFACTURER_OPTIONS = ["Dell", "HP", "Lenovo", "Apple", "ASUS", "Acer", "Microsoft", "Other"]
DRIVER_CATEGORY_OPTIONS = [
    "Wi-Fi", "Audio", "Graphics", "Bluetooth", "Chipset", "BIOS", "Touchpad", "Camera",
]

SERIAL_DECLINE_OPTION = "I don't know"
DIFFERENT_DEVICE_OPTION = "No, different device"
USE_SAVED_DEVICE_OPTION = "Yes, use saved device"
CONFIRM_OPTIONS = ["Yes", "Edit"]
NO_RESULTS_OPTIONS = ["Search again", "Done"]
SAVE_DEVICE_OPTIONS = ["Save device", "Not now"]
INSTALL_HELP_OPTIONS = ["Yes, show me how", "No, thank you"]
VIDEO_GUIDE_OPTIONS = ["Yes, show videos", "No, I'm done"]
END_OPTIONS = ["New request", "Done"]

REQUEST_PROMPTS: Dict[Optional[Intent], str] = {
    Intent.DRIVER: "Which driver do you need?",
    Intent.GAME: "What game do you want?",
    Intent.SOFTWARE: "What software do you want?",
}

INSTALL_GUIDES: Dict[OSFamily, List[str]] = {
    OSFamily.WINDOWS: [
        "Open your Downloads folder and double-click the installer (.exe or .msi).",
        "If Windows asks for permission, check the publisher name and click Yes.",
        "Follow the setup wizard and keep the default install location unless you need another.",
    ],
    OSFamily.MACOS: [
        "Open the downloaded .dmg or .pkg file from your Downloads folder.",
        "For a .dmg, drag the app into the Applications folder.",
        "On first launch, confirm you want to open an app downloaded from the internet.",
    ],
    OSFamily.LINUX: [
        "Prefer your distribution's package manager or software center when the app is listed there.",
        "For a .deb or .rpm file, open it with your software installer or install it from a terminal.",
        "For an AppImage, mark the file as executable and run it.",
    ],
    OSFamily.ANDROID: [
        "Install from the Google Play Store whenever the app is available there.",
        "Only install APK files from the vendor's official site, and review the permissions it asks for.",
    ],
    OSFamily.IOS: [
        "Open the App Store, search for the app and tap Get.",
        "Confirm with Face ID, Touch ID or your Apple ID password.",
    ],
    OSFamily.CHROMEOS: [
        "Install from the Google Play Store or the Chrome Web Store.",
        "Linux apps need the Linux development environment turned on in Settings.",
    ],
}

GENERIC_INSTALL_GUIDE = [
    "Open the downloaded file and follow the installer's prompts.",
    "Only grant the permissions the app actually needs.",
]


def request_prompt(ctx: SessionContext) -> str:
    return REQUEST_PROMPTS.get(ctx.intent, REQUEST_PROMPTS[Intent.SOFTWARE])


def device_label(ctx: SessionContext) -> str:
    """Short human-readable name for the device in the context"""
    if ctx.device.device_name:
        return ctx.device.device_name
    parts = [p for p in (ctx.device.manufacturer, ctx.device.model) if p]
    if parts:
        return " ".join(parts)
    if ctx.device_selected_from_profile:
        return "Saved device"
    return "your device"


def confirmation_summary(ctx: SessionContext) -> str:
    """Build the review sentence shown before searching"""
    os_parts = [p for p in (
        ctx.device.os_family.value if ctx.device.os_family else None,
        ctx.device.os_version,
    ) if p]
    device = device_label(ctx)
    if os_parts:
        device = f"{device}, {' '.join(os_parts)}"
    if ctx.device.serial:
        device = f"{device} (serial {ctx.device.serial})"

    request = ctx.request.driver_type or ctx.request.query_name or "not specified"
    if ctx.intent == Intent.DRIVER and ctx.request.driver_type:
        request = f"{request} driver"
    if ctx.request.specific_version:
        request = f"{request} {ctx.request.specific_version}"
    if ctx.request.platform:
        request = f"{request} on {ctx.request.platform.value}"

    return f"Confirm: {device}. Request: {request}. Proceed?"


def install_guide(ctx: SessionContext) -> str:
    steps = INSTALL_GUIDES.get(ctx.device.os_family, GENERIC_INSTALL_GUIDE)
    lines = [f"Here is how to install it on {device_label(ctx)}:"]
    lines.extend(f"{i}. {step}" for i, step in enumerate(steps, start=1))
    if ctx.intent == Intent.DRIVER:
        lines.append("Restart the device after installing a driver so it takes effect.")
    return "\n".join(lines)


def result_message(ctx: SessionContext) -> str:
    link = ctx.outcomes.selected_link
    name = (link.title if link and link.title else None) or ctx.request.query_name \
        or ctx.request.driver_type or "your download"
    message = f"I found a safe option for {name} based on your details."
    if ctx.outcomes.risk_status == RiskStatus.WARNED:
        message += " The safety scan raised a warning, so review the details before installing."
    return message
