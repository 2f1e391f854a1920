# =============================================================================
# Interview Snap - Capture Client Package
# =============================================================================
# This package contains the client-side components: camera session and
# permission observation, still-frame capture and JPEG encoding, and the
# streaming consumer that appends the relay's answer to the view state.
# =============================================================================
