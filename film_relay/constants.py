SIGNALING_PATH = "/signaling"

# Inbound
REGISTER_CAMERA = "register-camera"
REGISTER_CLIENT = "register-client"
OFFER = "offer"
ANSWER = "answer"
CANDIDATE = "candidate"
START_RECORDING = "start-recording"
STOP_RECORDING = "stop-recording"

NEGOTIATION_TYPES = frozenset({OFFER, ANSWER, CANDIDATE})
RECORDING_TYPES = frozenset({START_RECORDING, STOP_RECORDING})

# Outbound
INITIAL_STATE = "initial-state"
CAMERA_CONNECTED = "camera-connected"
CAMERA_DISCONNECTED = "camera-disconnected"
ERROR = "error"

STORE_UNAVAILABLE = "store-unavailable"

# Store keys, relative to STATE_STORE_PREFIX
SESSION_KEY = "session"
CAMERA_KEY = "camera:{slot_id}"
