from pydantic import BaseModel, ConfigDict

# ── Open-Meteo wire formats ─────────────────────────────────────────────────


class GeocodingResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    latitude: float
    longitude: float
    elevation: float | None = None
    country_code: str | None = None
    timezone: str | None = None
    population: int | None = None
    country: str | None = None
    admin1: str | None = None


class GeocodingResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    results: list[GeocodingResult] | None = None
    generationtime_ms: float | None = None


class WeatherCurrent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    time: str
    interval: int
    temperature_2m: float
    precipitation: float
    is_day: int
    rain: float


class WeatherHourly(BaseModel):
    time: list[str]
    temperature_2m: list[float]


class WeatherResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    latitude: float
    longitude: float
    generationtime_ms: float
    utc_offset_seconds: int | None = None
    timezone: str
    timezone_abbreviation: str
    elevation: float
    current: WeatherCurrent | None = None
    hourly: WeatherHourly | None = None


# ── Domain models ────────────────────────────────────────────────────────────


class Location(BaseModel):
    """A geocoded city."""

    latitude: float
    longitude: float
    name: str
    country: str = "Unknown"


class CurrentConditions(BaseModel):
    temperature: float
    precipitation: float
    is_day: bool
    rain: float
    time: str


class HourlyForecast(BaseModel):
    temperatures: list[float]
    times: list[str]


class WeatherReport(BaseModel):
    """Weather for a location, as returned by the weather client."""

    location: Location
    current: CurrentConditions | None = None
    hourly: HourlyForecast | None = None
    timezone: str
    elevation: float
    generation_time_ms: float
