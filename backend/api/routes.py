"""
REST API Routes

FastAPI routes for swing comparison.
Handles HTTP requests for pose detection, phase detection, playback
rate, calibration and overlay placement.
"""

import time
import logging
from typing import Iterator, Optional
from fastapi import APIRouter, Depends, HTTPException

from .schemas import (
    PoseDetectionRequest,
    PoseDetectionResponse,
    PoseSampleSchema,
    PhaseDetectionRequest,
    PhaseDetectionResponse,
    PlaybackRateRequest,
    PlaybackRateResponse,
    CalibrationRequest,
    CalibrationResponse,
    BodyMeasurementSchema,
    OverlayPointRequest,
    OverlayPointResponse,
    ReferenceSwingResponse,
    HandednessEnum,
    HealthResponse,
)
from swingsync import __version__
from swingsync.domain import BodyMeasurement, Handedness, PoseSequence, reference_for
from swingsync.services import (
    BodyMeasurementEstimator,
    OverlaySettings,
    PhaseDetector,
    PoseDetector,
    ScaleCalibrator,
    calculate_playback_rate,
    compose_overlay_point,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_pose_detector() -> Iterator[PoseDetector]:
    """Single-image detector, closed after the request."""
    with PoseDetector(static_image_mode=True) as detector:
        yield detector


# =============================================================================
# Health Check
# =============================================================================

@router.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="Service status"
)
async def health_check() -> HealthResponse:
    """
    Report the API version and whether a MediaPipe graph can be built.

    Returns:
        Health status and version information
    """
    mediapipe_ok = False
    try:
        with PoseDetector():
            mediapipe_ok = True
    except Exception as e:
        logger.warning(f"Pose detector unavailable: {e}")

    return HealthResponse(
        status="healthy",
        version=__version__,
        mediapipe_available=mediapipe_ok
    )


# =============================================================================
# Pose Detection
# =============================================================================

@router.post(
    "/pose/detect",
    response_model=PoseDetectionResponse,
    tags=["Pose Detection"],
    summary="Pose for one image"
)
async def detect_pose(
    request: PoseDetectionRequest,
    detector: PoseDetector = Depends(get_pose_detector),
) -> PoseDetectionResponse:
    """
    Detect a 17-keypoint pose in a base64-encoded image.

    For tracking a whole swing, use the WebSocket endpoint instead.
    """
    start_time = time.time()

    try:
        sample = detector.detect_from_base64(request.image_base64, timestamp=request.timestamp)
        processing_time = (time.time() - start_time) * 1000

        if sample is None:
            return PoseDetectionResponse(
                success=False,
                pose=None,
                error="No person detected in image",
                processing_time_ms=processing_time
            )

        return PoseDetectionResponse(
            success=True,
            pose=PoseSampleSchema.from_domain(sample),
            error=None,
            processing_time_ms=processing_time
        )

    except Exception as e:
        logger.error(f"Single-image detection failed: {e}")
        processing_time = (time.time() - start_time) * 1000
        return PoseDetectionResponse(
            success=False,
            pose=None,
            error=str(e),
            processing_time_ms=processing_time
        )


# =============================================================================
# Phase Detection
# =============================================================================

@router.post(
    "/phases/detect",
    response_model=PhaseDetectionResponse,
    tags=["Swing Phases"],
    summary="Detect Back/Apex/Impact/Follow from pose samples"
)
async def detect_phases(request: PhaseDetectionRequest) -> PhaseDetectionResponse:
    """
    Detect the remaining swing phases after a marked Setup.

    Fewer than five usable samples give fixed offsets from Setup.
    """
    try:
        sequence = PoseSequence([s.to_domain() for s in request.samples])
    except ValueError as e:
        logger.warning(f"Rejected pose sequence: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    detector = PhaseDetector(right_handed=request.handedness == HandednessEnum.RIGHT)
    phases = detector.detect(sequence, request.setup_time)

    return PhaseDetectionResponse(phases=phases, sample_count=len(sequence))


# =============================================================================
# Playback Rate
# =============================================================================

@router.post(
    "/playback/rate",
    response_model=PlaybackRateResponse,
    tags=["Playback"],
    summary="Reference playback rate for synchronized replay"
)
async def playback_rate(request: PlaybackRateRequest) -> PlaybackRateResponse:
    """
    Rate at which the reference must play so its Back -> Follow segment
    lasts as long as the user's. 1.0 when phases are missing or invalid.
    """
    if request.reference_phases is not None:
        reference_phases = request.reference_phases
    else:
        reference_phases = reference_for(request.handedness.value).phases.to_dict()

    rate = calculate_playback_rate(request.user_phases, reference_phases)
    return PlaybackRateResponse(rate=rate)


# =============================================================================
# Calibration
# =============================================================================

@router.post(
    "/calibration",
    response_model=CalibrationResponse,
    tags=["Calibration"],
    summary="Scale and offset aligning the reference with the user"
)
async def calibrate(request: CalibrationRequest) -> CalibrationResponse:
    """
    Measure both subjects and compute the overlay calibration.
    """
    user = BodyMeasurementEstimator.estimate(request.user.to_domain())
    reference = BodyMeasurementEstimator.estimate(request.reference.to_domain())
    calibration = ScaleCalibrator.calibrate(user, reference)

    return CalibrationResponse(
        user_measurement=_convert_measurement(user),
        reference_measurement=_convert_measurement(reference),
        scale=calibration.scale,
        offset_x=calibration.offset_x,
        offset_y=calibration.offset_y,
    )


# =============================================================================
# Overlay
# =============================================================================

@router.post(
    "/overlay/point",
    response_model=OverlayPointResponse,
    tags=["Overlay"],
    summary="Map a reference keypoint to display coordinates"
)
async def overlay_point(request: OverlayPointRequest) -> OverlayPointResponse:
    """
    Place a reference keypoint over the user's video.
    """
    settings = OverlaySettings(
        scale=request.overlay_scale,
        offset_x=request.offset_x,
        offset_y=request.offset_y,
    )
    transform = settings.container_transform(
        reference_for(request.handedness.value).translate_sign
    )

    try:
        x, y = compose_overlay_point(
            request.keypoint.to_domain(),
            video_size=(request.video_width, request.video_height),
            viewport_size=(request.viewport_width, request.viewport_height),
            container_scale=request.container_scale,
            transform=transform,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return OverlayPointResponse(x=x, y=y, transform=transform.to_css())


# =============================================================================
# Reference Swings
# =============================================================================

@router.get(
    "/reference/{handedness}",
    response_model=ReferenceSwingResponse,
    tags=["Reference"],
    summary="Built-in reference swing for a handedness"
)
async def get_reference(handedness: HandednessEnum) -> ReferenceSwingResponse:
    reference = reference_for(Handedness(handedness.value))
    return ReferenceSwingResponse(
        name=reference.name,
        video=reference.video,
        handedness=HandednessEnum(reference.handedness.value),
        phases=reference.phases.to_dict(),
        translate_pct=OverlaySettings().container_transform(reference.translate_sign).translate_pct,
    )


# =============================================================================
# Helper Functions
# =============================================================================

def _convert_measurement(measurement: Optional[BodyMeasurement]) -> Optional[BodyMeasurementSchema]:
    """Convert a domain BodyMeasurement to its API schema."""
    if measurement is None:
        return None
    return BodyMeasurementSchema(
        height=measurement.height,
        head_y=measurement.head_y,
        avg_ankle_y=measurement.avg_ankle_y,
    )
