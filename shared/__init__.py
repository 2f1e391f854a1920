# =============================================================================
# Interview Snap - Shared Package
# =============================================================================
# Wire contracts shared by the capture client and the streaming relay.
# =============================================================================
