"""Bill payment enums."""

from enum import Enum


class BillCategory(str, Enum):
    """Utility categories sold through the bills aggregator."""

    AIRTIME = "airtime"
    DATA = "data"
    DSTV = "dstv"
    ELECTRIC = "electric"

    @classmethod
    def from_string(cls, value: str) -> "BillCategory":
        try:
            return cls(value.lower())
        except ValueError:
            valid_values = ", ".join([c.value for c in cls])
            raise ValueError(
                f"Invalid bill category: {value}. "
                f"Valid values are: {valid_values}"
            )

    @property
    def display_name(self) -> str:
        return {
            BillCategory.AIRTIME: "Airtime",
            BillCategory.DATA: "Data",
            BillCategory.DSTV: "DSTV",
            BillCategory.ELECTRIC: "Electricity",
        }[self]


class NetworkProvider(str, Enum):
    """Mobile networks and their aggregator service ids."""

    MTN = "mtn"
    AIRTEL = "airtel"
    GLO = "glo"
    NINE_MOBILE = "9mobile"

    @classmethod
    def from_string(cls, value: str) -> "NetworkProvider":
        try:
            return cls(value.lower())
        except ValueError:
            valid_values = ", ".join([n.value for n in cls])
            raise ValueError(
                f"Invalid network provider: {value}. "
                f"Valid values are: {valid_values}"
            )

    @property
    def service_id(self) -> str:
        return "etisalat" if self == NetworkProvider.NINE_MOBILE else self.value

    @property
    def data_service_id(self) -> str:
        return f"{self.service_id}-data"


class BillPaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
