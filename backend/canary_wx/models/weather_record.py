"""DailyWeatherRecord ORM model for imported AEMET daily climatology."""

import datetime as dt

from sqlalchemy import Boolean, Date, DateTime, Float, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class DailyWeatherRecordModel(Base):
    __tablename__ = "weather_data"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    station_id: Mapped[str] = mapped_column(String(10), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    tmax: Mapped[float | None] = mapped_column(Float, nullable=True)  # °C
    tmin: Mapped[float | None] = mapped_column(Float, nullable=True)  # °C
    tavg: Mapped[float | None] = mapped_column(Float, nullable=True)  # °C
    precip: Mapped[float | None] = mapped_column(Float, nullable=True)  # mm
    sol: Mapped[float | None] = mapped_column(Float, nullable=True)  # sun hours
    wind_speed: Mapped[float | None] = mapped_column(Float, nullable=True)  # km/h (velmedia)
    is_interpolated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime, default=lambda: dt.datetime.now(dt.timezone.utc)
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime, default=lambda: dt.datetime.now(dt.timezone.utc),
        onupdate=lambda: dt.datetime.now(dt.timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint("station_id", "date", name="uq_weather_station_date"),
        Index("idx_weather_station_date", "station_id", "date"),
    )
