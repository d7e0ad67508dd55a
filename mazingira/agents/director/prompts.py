VIDEO_PROMPT = (
    "A cinematic aerial drone simulation of: {prompt}. "
    "Highly realistic, 4k, environmental surveillance style."
)

REASSURING_MESSAGES = (
    "Connecting to multispectral satellite array...",
    "Rendering environmental variance signatures...",
    "Processing cinematic forest telemetry...",
    "Encoding surveillance simulation for terminal...",
    "Uplink almost complete, stabilizing signal...",
)
