"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, status

from app.schemas import BucketOut, ErrorDetail, LocationsOut, ReadingOut, StatsOut
from models.errors import (
    InvalidDateFormat,
    InvalidDrilldownRequest,
    InvalidPayload,
    StorageUnavailable,
    TemperatureServiceError,
    UnauthorizedIngest,
    UnknownLocation,
)
from models.records import Bucket
from services.temperatures import TemperatureService, build_default_service

router = APIRouter()

_STATUS_BY_ERROR = {
    InvalidDateFormat: status.HTTP_400_BAD_REQUEST,
    InvalidPayload: status.HTTP_400_BAD_REQUEST,
    InvalidDrilldownRequest: status.HTTP_400_BAD_REQUEST,
    UnknownLocation: status.HTTP_404_NOT_FOUND,
    UnauthorizedIngest: status.HTTP_401_UNAUTHORIZED,
    StorageUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}

_ERROR_RESPONSES: Dict[Union[int, str], Dict[str, Any]] = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorDetail, "description": "Malformed request."},
    status.HTTP_404_NOT_FOUND: {"model": ErrorDetail, "description": "Unknown location."},
    status.HTTP_503_SERVICE_UNAVAILABLE: {
        "model": ErrorDetail,
        "description": "Reading store unavailable.",
    },
}


def get_service() -> TemperatureService:
    return build_default_service()


def _http_error(exc: TemperatureServiceError) -> HTTPException:
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(
        status_code=status_code,
        detail=ErrorDetail(error=exc.kind, reason=exc.reason).model_dump(),
    )


def _parse_offset(value: str) -> int:
    try:
        return int(value.strip())
    except ValueError as exc:
        raise InvalidDateFormat(f"offset {value!r} is not an integer.") from exc


def _parse_limit(value: Optional[str]) -> Optional[int]:
    if value is None or not value.strip():
        return None
    try:
        parsed = int(value.strip())
    except ValueError as exc:
        raise InvalidPayload(f"limit {value!r} is not an integer.") from exc
    if parsed < 1:
        raise InvalidPayload(f"limit must be at least 1, got {parsed}.")
    return parsed


@router.get(
    "/api/temperatures",
    response_model=List[Union[BucketOut, ReadingOut]],
    responses=_ERROR_RESPONSES,
    summary="Bucketed temperatures for a period, or raw readings for the hourly view.",
)
async def get_temperatures(
    period: str = Query("day", description="hourly, day, week, month or year."),
    offset: str = Query("0", description="0 = current period, -1 = previous, 1 = next."),
    location: Optional[str] = Query(None, description="Restrict to one location."),
    start_date: Optional[str] = Query(None, description="Explicit ISO-8601 range start."),
    end_date: Optional[str] = Query(None, description="Explicit ISO-8601 range end."),
    limit: Optional[str] = Query(None, description="Row cap for the hourly view."),
    service: TemperatureService = Depends(get_service),
) -> List[Union[BucketOut, ReadingOut]]:
    try:
        rows = service.get_buckets(
            period=period,
            offset=_parse_offset(offset),
            location=location or None,
            start_date=start_date,
            end_date=end_date,
            limit=_parse_limit(limit),
        )
    except TemperatureServiceError as exc:
        raise _http_error(exc) from exc
    return [
        BucketOut.from_record(row) if isinstance(row, Bucket) else ReadingOut.from_record(row)
        for row in rows
    ]


@router.get(
    "/api/temperatures/latest",
    response_model=Union[ReadingOut, Dict[str, Any]],
    responses=_ERROR_RESPONSES,
    summary="Most recent reading, or an empty object when nothing is stored.",
)
async def get_latest_temperature(
    location: Optional[str] = Query(None, description="Restrict to one location."),
    service: TemperatureService = Depends(get_service),
) -> Union[ReadingOut, Dict[str, Any]]:
    try:
        latest = service.get_latest(location or None)
    except TemperatureServiceError as exc:
        raise _http_error(exc) from exc
    if latest is None:
        return {}
    return ReadingOut.from_record(latest)


@router.get(
    "/api/temperatures/stats",
    response_model=StatsOut,
    responses=_ERROR_RESPONSES,
    summary="Average, minimum and maximum over a whole window.",
)
async def get_temperature_stats(
    period: str = Query("day"),
    offset: str = Query("0"),
    location: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    service: TemperatureService = Depends(get_service),
) -> StatsOut:
    try:
        stats = service.get_stats(
            period=period,
            offset=_parse_offset(offset),
            location=location or None,
            start_date=start_date,
            end_date=end_date,
        )
    except TemperatureServiceError as exc:
        raise _http_error(exc) from exc
    return StatsOut.from_record(stats)


@router.get(
    "/api/temperatures/raw",
    response_model=List[ReadingOut],
    responses=_ERROR_RESPONSES,
    summary="Raw readings behind one aggregated bucket.",
)
async def get_raw_temperatures(
    timestamp: Optional[str] = Query(None, description="Bucket label as returned by /api/temperatures."),
    location: Optional[str] = Query(None),
    period: Optional[str] = Query(
        None, description="Period that produced the label; inferred from its shape when omitted."
    ),
    service: TemperatureService = Depends(get_service),
) -> List[ReadingOut]:
    try:
        readings = service.get_raw_for_bucket(timestamp, location, period)
    except TemperatureServiceError as exc:
        raise _http_error(exc) from exc
    return [ReadingOut.from_record(reading) for reading in readings]


@router.post(
    "/api/temperatures",
    status_code=status.HTTP_201_CREATED,
    response_model=ReadingOut,
    responses={
        **_ERROR_RESPONSES,
        status.HTTP_401_UNAUTHORIZED: {"model": ErrorDetail, "description": "Bad ingest secret."},
    },
    summary="Record a reading reported by a sensor.",
)
async def ingest_temperature(
    payload: Any = Body(..., description="{temperature, device_id, timestamp?}"),
    x_ingest_secret: Optional[str] = Header(None, description="Shared ingest secret."),
    service: TemperatureService = Depends(get_service),
) -> ReadingOut:
    try:
        reading = service.ingest(x_ingest_secret, payload)
    except TemperatureServiceError as exc:
        raise _http_error(exc) from exc
    return ReadingOut.from_record(reading)


@router.get(
    "/api/locations",
    response_model=LocationsOut,
    summary="Registered locations and their devices.",
)
async def list_locations(
    service: TemperatureService = Depends(get_service),
) -> LocationsOut:
    return LocationsOut(locations=service.registry.as_dict())


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
