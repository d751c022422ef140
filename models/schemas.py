"""Data models for the guided download assistant"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any
from enum import Enum


class FlowState(str, Enum):
    """Guided conversation state machine states"""
    DETECT_INTENT = "detect_intent"
    CHECK_SAVED_DEVICES = "check_saved_devices"
    SELECT_SAVED_DEVICE = "select_saved_device"

    # Device identification
    ASK_DEVICE_TYPE = "ask_device_type"
    ASK_OS_FAMILY = "ask_os_family"
    ASK_OS_VERSION = "ask_os_version"
    ASK_MANUFACTURER = "ask_manufacturer"
    ASK_MODEL = "ask_model"
    ASK_SERIAL = "ask_serial"

    # Request and review
    ASK_REQUEST_DETAILS = "ask_request_details"
    CONFIRM_SUMMARY = "confirm_summary"

    # Search / safety stages (driven by the caller)
    SEARCH_AND_EXTRACT = "search_and_extract"
    NO_RESULTS = "no_results"
    SAFETY_CHECK_URL = "safety_check_url"
    QUEUE_DOWNLOAD_HISTORY = "queue_download_history"
    PRESENT_RESULT = "present_result"

    # Follow-up offers
    OFFER_SAVE_DEVICE = "offer_save_device"
    SAVE_DEVICE_NAME = "save_device_name"
    SAVE_DEVICE_COMMIT = "save_device_commit"
    OFFER_INSTALL_HELP = "offer_install_help"
    INSTALL_GUIDE = "install_guide"
    OFFER_VIDEO_GUIDES = "offer_video_guides"
    PRESENT_GUIDES = "present_guides"

    END = "end"
    ERROR = "error"


class Intent(str, Enum):
    SOFTWARE = "software"
    GAME = "game"
    DRIVER = "driver"


class OSFamily(str, Enum):
    WINDOWS = "Windows"
    MACOS = "macOS"
    LINUX = "Linux"
    ANDROID = "Android"
    IOS = "iOS"
    CHROMEOS = "ChromeOS"


class DeviceType(str, Enum):
    LAPTOP = "Laptop"
    DESKTOP = "Desktop"
    PHONE = "Phone"
    TABLET = "Tablet"
    OTHER = "Other"


class Architecture(str, Enum):
    X64 = "x64"
    ARM64 = "arm64"
    X86 = "x86"


class Platform(str, Enum):
    """Storefront or distribution channel for a request"""
    STEAM = "Steam"
    EPIC = "Epic"
    STANDALONE = "Standalone"
    APP_STORE = "AppStore"
    PLAY_STORE = "PlayStore"


class VersionPreference(str, Enum):
    LATEST = "latest"
    SPECIFIC = "specific"


class RiskStatus(str, Enum):
    """Safety classification of a candidate download link"""
    VERIFIED = "verified"
    WARNED = "warned"
    QUARANTINED = "quarantined"
    BLOCKED = "blocked"


class SaveChoice(str, Enum):
    SAVE = "save"
    NOT_NOW = "not_now"


class UIType(str, Enum):
    """Input affordance the chat UI should render"""
    TEXT = "text"
    SELECT = "select"
    BUTTONS = "buttons"
    CARD = "card"
    NONE = "none"


class ExternalAction(str, Enum):
    """Work the caller must perform outside the engine before continuing"""
    SEARCH = "search"
    SAFETY_SCAN = "safety_scan"
    RECORD_DOWNLOAD = "record_download"
    SAVE_DEVICE = "save_device"
    VIDEO_GUIDES = "video_guides"


class _Record(BaseModel):
    """Base for context records: immutable, unknown fields rejected"""
    model_config = ConfigDict(extra="forbid", frozen=True)


class DeviceInfo(_Record):
    """Target machine, populated slot by slot"""
    device_name: Optional[str] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    serial: Optional[str] = None
    os_family: Optional[OSFamily] = None
    os_version: Optional[str] = None
    arch: Optional[Architecture] = None
    device_type: Optional[DeviceType] = None


class RequestDetails(_Record):
    """What the user wants to download"""
    query_name: Optional[str] = None
    driver_type: Optional[str] = None
    platform: Optional[Platform] = None
    version_preference: Optional[VersionPreference] = None
    specific_version: Optional[str] = None


class Confirmation(_Record):
    summary: Optional[str] = None
    confirmed: bool = False


class CandidateLink(_Record):
    """A download link returned by the search backend"""
    url: str
    title: Optional[str] = None
    vendor: Optional[str] = None
    version: Optional[str] = None


class Outcomes(_Record):
    """Results of the search and safety stages"""
    candidate_links: List[CandidateLink] = Field(default_factory=list)
    selected_link: Optional[CandidateLink] = None
    risk_status: Optional[RiskStatus] = None
    download_history_id: Optional[str] = None


class SaveDeviceOffer(_Record):
    eligible: bool = False
    user_choice: Optional[SaveChoice] = None
    needs_device_name: bool = False


class InstallHelp(_Record):
    offered: bool = False
    accepted: bool = False


class SavedDevice(_Record):
    """A device previously stored on the user's profile"""
    id: str
    name: str
    device_type: Optional[DeviceType] = None
    manufacturer: str
    model: str
    os_family: Optional[OSFamily] = None
    os_version: Optional[str] = None
    serial: Optional[str] = None


class SessionContext(_Record):
    """Everything learned so far in one guided conversation"""
    intent: Optional[Intent] = None
    device_selected_from_profile: bool = False
    device_id: Optional[str] = None
    device: DeviceInfo = Field(default_factory=DeviceInfo)
    request: RequestDetails = Field(default_factory=RequestDetails)
    confirmation: Confirmation = Field(default_factory=Confirmation)
    outcomes: Outcomes = Field(default_factory=Outcomes)
    save_device_offer: SaveDeviceOffer = Field(default_factory=SaveDeviceOffer)
    install_help: InstallHelp = Field(default_factory=InstallHelp)
    saved_devices: List[SavedDevice] = Field(default_factory=list)


class UIDescriptor(BaseModel):
    """Describes the input affordance for a state"""
    type: UIType = UIType.NONE
    options: List[str] = Field(default_factory=list)
    help_topics: List[str] = Field(default_factory=list)
    component: Optional[str] = None


class RenderDirective(BaseModel):
    """What the caller should display after a transition"""
    state: FlowState
    message: Optional[str] = None
    ui: UIDescriptor = Field(default_factory=UIDescriptor)
    awaits: Optional[ExternalAction] = None
    context: SessionContext

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe representation for the HTTP layer"""
        return self.model_dump(mode="json")
