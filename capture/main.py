# =============================================================================
# Interview Snap - Capture Client Orchestrator
# =============================================================================
# Entry point for the capture client process.  Ties together the camera
# session, permission observation, frame capture, and the streaming analysis
# client, and renders the view state in the terminal.
#
# Take-photo flow:
#   1. Verify the live preview has a complete frame (else "stream not ready")
#   2. Draw the frame offscreen and encode it as a JPEG data URL
#   3. Clear the previous transcript and error, raise the busy flag
#   4. POST the image to the relay and append each streamed fragment
#   5. Lower the busy flag whether the stream completed or failed
# =============================================================================

import argparse
import logging
import sys
from typing import FrozenSet, Optional

from config import Config, get_config
from capture.camera import CameraError, CameraSession
from capture.client import AnalysisClient, AnalysisError
from capture.devices import MediaDevices, OpenCVMediaDevices, VideoConstraints
from capture.frame import FrameGrabber, StreamNotReadyError
from capture.state import ClientState
from shared.schemas import PermissionState

logger = logging.getLogger(__name__)

PERMISSION_BLOCKED_MESSAGE = (
    "Camera access is blocked. Please update your system settings to allow "
    "camera access, then restart the app."
)


class InterviewSnapApp:
    """
    Orchestrator for one capture-and-analyze session.

    Args:
        config:  The global Config instance.
        devices: Camera backend (OpenCV by default).
        client:  Relay client (built from config by default).
        state:   View state to drive (a fresh one by default).
    """

    def __init__(
        self,
        config: Config,
        devices: Optional[MediaDevices] = None,
        client: Optional[AnalysisClient] = None,
        state: Optional[ClientState] = None,
    ):
        self._config = config
        self._devices = devices or OpenCVMediaDevices(camera_index=config.camera_index)
        self._camera = CameraSession(
            self._devices,
            constraints=VideoConstraints(
                facing_mode="user",
                ideal_width=config.ideal_width,
                ideal_height=config.ideal_height,
            ),
        )
        self._grabber = FrameGrabber(quality=config.jpeg_quality)
        self._client = client or AnalysisClient(
            config.analyze_url, timeout=config.request_timeout_seconds
        )
        self.state = state or ClientState()
        self._permission_subscribed = False

    @property
    def camera(self) -> CameraSession:
        return self._camera

    # -----------------------------------------------------------------
    # Permission
    # -----------------------------------------------------------------

    def _on_permission_change(self, permission_state: PermissionState) -> None:
        self.state.update(permission_state=permission_state)

    def check_camera_permission(self) -> None:
        """Sync the permission state and subscribe to changes (once)."""
        status = self._devices.query_permission()
        self.state.update(permission_state=status.state)
        if not self._permission_subscribed:
            status.add_listener(self._on_permission_change)
            self._permission_subscribed = True

    # -----------------------------------------------------------------
    # Camera
    # -----------------------------------------------------------------

    def start_camera(self) -> bool:
        """
        Open the camera and start the preview.

        Returns:
            True on success; on failure the classified message is shown.
        """
        self.state.update(error="")
        try:
            self._camera.start()
        except CameraError as exc:
            self.state.update(error=exc.user_message, camera_active=False)
            return False
        finally:
            self.check_camera_permission()

        self.state.update(camera_active=True)
        return True

    def stop_camera(self) -> None:
        """Release the camera.  Safe to call when it is already stopped."""
        self._camera.stop()
        self.state.update(camera_active=False)

    # -----------------------------------------------------------------
    # Capture and analyze
    # -----------------------------------------------------------------

    def take_photo(self) -> bool:
        """
        Capture the current frame and stream its analysis into the state.

        Returns:
            True if the analysis stream completed cleanly.
        """
        if self.state.is_loading:
            logger.warning("Analysis already in progress; ignoring capture.")
            return False

        try:
            frame = self._grabber.capture(self._camera.preview)
        except StreamNotReadyError as exc:
            self.state.update(error=f"{exc}. Please try again.")
            return False

        self.state.update(is_loading=True, analysis="", error="")
        logger.info("Submitting %dx%d frame (%d KB).", frame.width, frame.height, len(frame.jpeg_bytes) // 1024)
        try:
            for fragment in self._client.stream_analysis(frame.data_url):
                self.state.append_analysis(fragment)
            return True
        except AnalysisError as exc:
            self.state.update(error=f"{exc}. Please try again.")
            return False
        finally:
            self.state.update(is_loading=False)


class TerminalView:
    """Prints ClientState changes; transcript fragments appear as they stream."""

    def __init__(self, out=None):
        self._out = out or sys.stdout
        self._printed = 0

    def __call__(self, state: ClientState, changed: FrozenSet[str]) -> None:
        if "analysis" in changed:
            if len(state.analysis) < self._printed:
                self._printed = 0
            self._out.write(state.analysis[self._printed:])
            self._printed = len(state.analysis)
        if "is_loading" in changed:
            self._out.write("\nAnalyzing...\n" if state.is_loading else "\n")
        if "error" in changed and state.error:
            self._out.write(f"\n[error] {state.error}\n")
        if "permission_state" in changed:
            self._out.write(f"[camera permission: {state.permission_state.value}]\n")
            if state.permission_state is PermissionState.DENIED:
                self._out.write(f"[error] {PERMISSION_BLOCKED_MESSAGE}\n")
        if "camera_active" in changed:
            self._out.write("[camera on]\n" if state.camera_active else "[camera off]\n")
        self._out.flush()


def run_interactive(app: InterviewSnapApp) -> None:
    """Read single-letter commands from stdin until quit or EOF."""
    print("  Commands: <Enter> take photo | s start/stop camera | q quit\n")
    app.check_camera_permission()
    app.start_camera()

    try:
        for line in sys.stdin:
            command = line.strip().lower()
            if command == "q":
                break
            elif command == "s":
                if app.camera.active:
                    app.stop_camera()
                else:
                    app.start_camera()
            elif command == "":
                if not app.camera.active:
                    print("Start the camera first (s).")
                    continue
                app.take_photo()
            else:
                print(f"Unknown command: {command!r}")
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received. Shutting down...")
    finally:
        app.stop_camera()


def main():
    """CLI entry point for the capture client."""
    parser = argparse.ArgumentParser(
        description="Interview Snap — capture a photo and stream its analysis",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--camera", type=int, default=None, help="Camera device index")
    parser.add_argument(
        "--server-url", type=str, default=None,
        help="Relay base URL (e.g., http://127.0.0.1:8000)",
    )
    parser.add_argument("--quality", type=int, default=None, help="JPEG quality (1-95)")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    config = get_config()
    if args.camera is not None:
        config.camera_index = args.camera
    if args.server_url is not None:
        config.server_url = args.server_url.rstrip("/")
    if args.quality is not None:
        config.jpeg_quality = args.quality

    print("\n" + "=" * 60)
    print("  Interview Snap — Capture Client")
    print("=" * 60)
    print(f"  Camera     : {config.camera_index} ({config.ideal_width}x{config.ideal_height} ideal)")
    print(f"  JPEG       : quality {config.jpeg_quality}")
    print(f"  Relay      : {config.analyze_url}")
    print("=" * 60 + "\n")

    app = InterviewSnapApp(config)
    app.state.subscribe(TerminalView())
    run_interactive(app)


if __name__ == "__main__":
    main()
