"""
Centralized configuration constants for the matting pipeline.

Ground rules:
- uint8 masks in, uint8 RGBA out, same dimensions
- every stage returns a new buffer
"""

# Mask smoothing: only the ambiguous band (strictly between these) is blurred.
SMOOTH_BAND_LOW = 20
SMOOTH_BAND_HIGH = 250
GAUSSIAN_SIGMA = 1.0
KERNEL_SIZE = 5

# Adaptive erosion: neighbours below this count as background; at least
# ERODE_MIN_BACKGROUND_NEIGHBORS of them are needed before a pixel is eroded.
ERODE_BACKGROUND_LEVEL = 50
ERODE_MIN_BACKGROUND_NEIGHBORS = 2

# Connected-component noise filter.
REGION_SEED_THRESHOLD = 30
MIN_REGION_ABSOLUTE = 200
MIN_REGION_RATIO_OF_TOTAL = 0.001
MIN_REGION_RATIO_OF_LARGEST = 0.01

# Alpha ramp. Observed deployments used 25, 100 and 128; 128 is the most aggressive on dark objects.
ALPHA_THRESHOLD = 128

# Matting refinement in the transition band.
REFINE_ALPHA_LOW = 0.1
REFINE_ALPHA_HIGH = 0.9
MATTE_SAMPLE_RADIUS = 3
FOREGROUND_SAMPLE_LEVEL = 200
BACKGROUND_SAMPLE_LEVEL = 30
BASE_ALPHA_WEIGHT = 0.6

# Compositing.
DISPLAY_GAMMA = 2.2
DEFRINGE_ALPHA_LOW = 0.3
DEFRINGE_ALPHA_HIGH = 0.95
DEFRINGE_STRENGTH = 0.2
LUMA_WEIGHTS = (0.299, 0.587, 0.114)

# Chroma key: tolerance is a percentage (0-50) of the largest possible RGB distance.
CHROMA_KEY_TOLERANCE = 10
CHROMA_KEY_TOLERANCE_MAX = 50
CHROMA_KEY_RAMP = 0.5
MAX_RGB_DISTANCE = (3 * 255.0**2) ** 0.5

# Segmentation model adapter.
# Tried in order; the first one that loads is cached for the lifetime of the process.
MODEL_VARIANTS = (
    "hf:briaai/RMBG-1.4",
    "hf:ZhengPeng7/BiRefNet",
)
TARGET_SIZE = 1024
PAD_COLOR = 127
# RMBG input normalization; used for every model without its own entry below.
NORM_MEAN = [0.5, 0.5, 0.5]
NORM_STD = [1.0, 1.0, 1.0]
IMAGENET_MEAN = [0.485, 0.456, 0.406]
IMAGENET_STD = [0.229, 0.224, 0.225]
MODEL_NORMALIZATION = {
    "ZhengPeng7/BiRefNet": (IMAGENET_MEAN, IMAGENET_STD),
}

# Models whose final output is already a probability. Everything else (BiRefNet,
# TorchScript exports) returns logits and gets a sigmoid.
PROBABILITY_OUTPUT_MODELS = ("briaai/RMBG-1.4",)
