"""
System constants
"""


class Constants:
    """Fixed numeric constants shared by the estimation stack"""
    # Landmark topology (MediaPipe FaceMesh)
    FULL_LANDMARK_COUNT = 468  # full mesh, 478 with refined iris points
    PARTIAL_LANDMARK_TIER = 300  # below this the mesh is mostly occluded

    # Numerical guards
    EPS = 1e-6  # minimum usable pixel distance
    QUATERNION_EPS = 1e-12  # magnitude treated as zero
    MIN_MEASUREMENT_NOISE = 1e-9  # floor for R, avoids K = P / 0

    # Scalar filter defaults
    INITIAL_COVARIANCE = 1.0
    FILTER_HISTORY_SIZE = 100

    # Anthropometry (adult average, mm)
    AVERAGE_IPD_MM = 63.0
    REFERENCE_HEAD_WIDTH_MM = 145.0
    REFERENCE_HEAD_HEIGHT_MM = 230.0
    REFERENCE_HEAD_DEPTH_MM = 190.0

    # Monocular camera approximation
    FOCAL_LENGTH_PX = 500.0

    # Per-category fit multipliers (tight vs loose accessory)
    PRODUCT_MULTIPLIERS = {
        "hat": 1.0,
        "cap": 1.0,
        "glasses": 0.7,
    }
    DEFAULT_PRODUCT_MULTIPLIER = 1.0

    # Face shape -> (scale multiplier, vertical offset)
    MORPHOLOGY_WEIGHTS = {
        "round": (1.1, 0.02),
        "oval": (1.0, 0.0),
        "square": (1.05, -0.01),
        "long": (0.95, 0.03),
    }

    # Render loop assumptions
    NOMINAL_FPS = 30.0
