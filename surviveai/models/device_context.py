"""Device context snapshot injected into the system prompt."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

EmergencyType = Literal["lost", "injury", "wildlife", "other"]


class LocationInfo(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    elevation_m: Optional[float] = None
    accuracy_m: Optional[float] = None


class TimeInfo(BaseModel):
    local_time: str
    timezone: str


def _time_info(now: datetime) -> TimeInfo:
    return TimeInfo(local_time=now.strftime("%H:%M"), timezone=now.tzname() or "UTC")


class DeviceInfo(BaseModel):
    battery_percent: Optional[int] = Field(default=None, ge=0, le=100)
    is_charging: bool = False


class NetworkInfo(BaseModel):
    is_offline: bool = False


class UserState(BaseModel):
    emergency_mode: Optional[EmergencyType] = None


class DeviceContext(BaseModel):
    """Location, time, battery, network and emergency state of the device."""

    location: LocationInfo = Field(default_factory=LocationInfo)
    time: TimeInfo
    device: DeviceInfo = Field(default_factory=DeviceInfo)
    network: NetworkInfo = Field(default_factory=NetworkInfo)
    user_state: UserState = Field(default_factory=UserState)

    @classmethod
    def capture(
        cls,
        latitude: float | None = None,
        longitude: float | None = None,
        elevation_m: float | None = None,
        battery_percent: int | None = None,
        is_charging: bool = False,
        is_offline: bool = False,
        emergency_mode: EmergencyType | None = None,
        now: datetime | None = None,
    ) -> "DeviceContext":
        """Build a context from explicit readings, stamping the current local time.

        Args:
            latitude: GPS latitude in degrees
            longitude: GPS longitude in degrees
            elevation_m: Elevation in meters
            battery_percent: Battery level 0-100
            is_charging: Whether the device is charging
            is_offline: Whether the network is unavailable
            emergency_mode: Active emergency type, if any
            now: Timestamp override (defaults to now, local timezone)

        Returns:
            DeviceContext instance
        """
        now = now or datetime.now().astimezone()
        return cls(
            location=LocationInfo(
                latitude=latitude, longitude=longitude, elevation_m=elevation_m
            ),
            time=_time_info(now),
            device=DeviceInfo(battery_percent=battery_percent, is_charging=is_charging),
            network=NetworkInfo(is_offline=is_offline),
            user_state=UserState(emergency_mode=emergency_mode),
        )

    def restamped(self, now: datetime | None = None) -> "DeviceContext":
        """Copy of this context with the time reading replaced by ``now``."""
        now = now or datetime.now().astimezone()
        return self.model_copy(update={"time": _time_info(now)})
