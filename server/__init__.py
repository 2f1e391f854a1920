# =============================================================================
# Interview Snap - Relay Package
# =============================================================================
# This package contains the server-side streaming relay: it validates a
# captured image, forwards it to the upstream multimodal model, and re-streams
# the model's answer to the caller as it is generated.
# =============================================================================
