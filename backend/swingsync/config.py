# config.py
"""
Configuration for SwingSync
Tuning values for phase detection, replay synchronization and overlay
"""

# Keypoints with a score at or below this are treated as missing
VISIBILITY_THRESHOLD = 0.3

# Phase detection
MIN_SEQUENCE_LENGTH = 5
SIGNAL_WEIGHTS = {
    "wrist": 0.4,
    "elbow": 0.3,
    "shoulder": 0.2,
    "arm_angle": 0.1,
}
BACK_MOTION_THRESHOLD = 10.0    # Units of the detection model's pixel frame
FOLLOW_STABLE_THRESHOLD = 5.0
FOLLOW_STABLE_SAMPLES = 5

# Offsets from Setup (seconds) used when the sequence is too short
FALLBACK_PHASE_OFFSETS = {
    "Back": 0.5,
    "Apex": 1.0,
    "Impact": 1.2,
    "Follow": 1.7,
}

# Replay / playback
PLAYBACK_SPEEDS = [1, 0.75, 0.5, 0.25, 0.1]
SCRUB_SYNC_THRESHOLD = 0.1      # seconds
SEEK_SETTLE_TIMEOUT = 0.3       # seconds
PROGRESS_POLL_INTERVAL = 0.5    # seconds
TIMEUPDATE_INTERVAL = 0.25      # seconds, matches browser media elements

# Overlay
DEFAULT_OVERLAY_SCALE = 0.475
MIN_OVERLAY_SCALE = 0.2
MAX_OVERLAY_SCALE = 1.2
RESIZE_SENSITIVITY = 0.003      # scale units per dragged pixel
REFERENCE_TRANSLATE_PCT = 15.0  # positive = right of the user video
OFFSET_PERCENT_FACTOR = 100.0

# Keypoint smoothing for live tracking (weight of the previous position)
KEYPOINT_SMOOTHING = 0.5

# MediaPipe Parameters
MEDIAPIPE_CONFIG = {
    'model_complexity': 1,  # 0=Lite, 1=Full, 2=Heavy
    'smooth_landmarks': True,
    'min_detection_confidence': 0.5,
    'min_tracking_confidence': 0.5
}

# Reference swings (timestamps converted from frames at 24fps)
REFERENCE_SWINGS = {
    "right": {
        "name": "Ben Hogan",
        "video": "/videos/Ben-Hogan.mp4",
        "phases": {
            "Setup": 2.17,   # 52 frames
            "Back": 2.50,    # 60 frames
            "Apex": 3.00,    # 72 frames
            "Impact": 3.25,  # 78 frames
            "Follow": 3.88,  # 93 frames
        },
    },
    "left": {
        "name": "Phil Mickelson",
        "video": "/videos/Phil-Mikelson.mp4",
        "phases": {
            "Setup": 0.42,   # 10 frames
            "Back": 0.54,    # 13 frames
            "Apex": 1.21,    # 29 frames
            "Impact": 1.50,  # 36 frames
            "Follow": 2.04,  # 49 frames
        },
    },
}
