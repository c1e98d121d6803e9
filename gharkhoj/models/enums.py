from enum import Enum


class AppRole(str, Enum):
    TENANT = "tenant"
    LANDLORD = "landlord"
    ADMIN = "admin"


class PropertyStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class InquiryStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class RoomType(str, Enum):
    SINGLE = "single"
    ONE_BHK = "1bhk"
    TWO_BHK = "2bhk"
    FLAT = "flat"
    HOSTEL = "hostel"


class BathroomType(str, Enum):
    SHARED = "shared"
    ATTACHED = "attached"


class GenderPreference(str, Enum):
    ANY = "any"
    MALE = "male"
    FEMALE = "female"


class SortOrder(str, Enum):
    NEWEST = "newest"
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    RESOLVING = "resolving"
    READY = "ready"


class ThreadState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"


def enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]
